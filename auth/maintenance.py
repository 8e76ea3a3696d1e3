"""
auth/maintenance.py -- Bulk re-encoding of clear-text passwords.

Installs that ran with encryption switched off have members whose password
column holds clear text (password_encryption = "none"). Once encryption is
turned on, encrypt_all_passwords() re-encodes each of them under the current
policy. Already-hashed credentials are left alone: their clear text is not
recoverable, and they keep verifying under their stored algorithm.
"""

from __future__ import annotations

import logging

from auth.encoder import PasswordEncoder
from auth.models import Member
from auth.repository import IdentityRepository
from core.errors import EncryptionDisabledError

logger = logging.getLogger("keyward.auth")


def encrypt_all_passwords(encoder: PasswordEncoder, repository: IdentityRepository) -> list[Member]:
    """Re-encode every clear-text password and return the migrated members.

    Raises:
        EncryptionDisabledError: the current policy has encryption switched off.
    """
    policy = encoder.get_policy()
    if not policy.enabled:
        raise EncryptionDisabledError(
            "Password encryption is disabled; enable it (ENCRYPT_PASSWORDS=true) before migrating."
        )

    migrated: list[Member] = []
    with repository.atomic():
        for member in repository.list_clear_text_members():
            encoded = encoder.encode(member.password)
            repository.update_password(member.id, encoded)
            member.password = encoded.value
            member.salt = encoded.salt
            member.password_encryption = encoded.algorithm.value
            migrated.append(member)
            logger.info("Encrypted credentials for member %s (%s)", member.id, member.email)

    logger.info(
        "Encrypted %d password(s) with %s (%s salt)",
        len(migrated),
        policy.algorithm.value,
        "with" if policy.use_salt else "without",
    )
    return migrated
