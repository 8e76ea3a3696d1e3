"""
auth/verifier.py -- Login decisions and administrator bootstrap.

CredentialVerifier decides which comparison path a login attempt takes:

  1. Bootstrap override: if a default admin credential is configured and the
     attempt matches it exactly (clear text, no hashing), the login resolves to
     an administrator member, created on demand. This keeps a fresh install
     reachable before any real member exists.

  2. Otherwise the repository looks the member up and compares the secret
     using the stored algorithm and salt.

Both "unknown email" and "wrong password" come back as None.

Layer rule: imports from auth/ and core/ only.
"""

from __future__ import annotations

import logging

from auth.encoder import PasswordEncoder
from auth.models import EncodedSecret, Member
from auth.repository import IdentityRepository
from auth.security import SecurityConfig

logger = logging.getLogger("keyward.auth")


class CredentialVerifier:
    """Authenticates login attempts against a repository and the bootstrap credential.

    Usage:
        config = get_security_config()
        encoder = PasswordEncoder(config)
        verifier = CredentialVerifier(config, encoder, MemberStore(encoder))
        member = verifier.authenticate("jane@example.com", "secret")
    """

    def __init__(self, config: SecurityConfig, encoder: PasswordEncoder, repository: IdentityRepository) -> None:
        self._config = config
        self._encoder = encoder
        self._repository = repository

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def authenticate(self, identity: str, secret: str) -> Member | None:
        """Return the matching member, or None."""
        if self._config.check_default_admin(identity, secret):
            member = self.find_or_create_administrator()
            logger.info("Default admin login resolved to member %s", member.id)
            return member

        member = self._repository.find_by_email_and_encoded_password(identity, secret)
        if member is None:
            logger.debug("Authentication failed for %r", identity)
            return None
        logger.info("Member %s authenticated", member.id)
        return member

    def find_or_create_administrator(self, username: str = "admin", password: str = "password") -> Member:
        """Return a member of the administrators group, creating group and member if needed.

        Idempotent: the lookups and inserts run inside one repository
        transaction, so concurrent callers end up with the same member.
        username and password are only used when a member has to be created;
        an existing member with that email is added to the group as is.
        """
        with self._repository.atomic():
            group = self._repository.find_admin_group()
            if group is None:
                group = self._repository.create_admin_group()

            member = self._repository.find_member_of_group(group)
            if member is not None:
                return member

            member = self._repository.get_by_email(username)
            if member is not None:
                self._repository.add_member_to_group(member, group)
                logger.warning("Added existing member %s to the administrators group", member.id)
            else:
                member = self._repository.create_member(
                    username,
                    self._encoder.encode(password),
                    group,
                    first_name="Admin",
                    surname="Admin",
                )
                logger.warning("Created bootstrap administrator %r -- change its password", username)
        return member

    def change_password(self, member: Member, new_password: str) -> EncodedSecret:
        """Encode new_password under the current policy and store it for member."""
        encoded = self._encoder.encode(new_password)
        if not self._repository.update_password(member.id, encoded):
            raise LookupError(f"Member {member.id} no longer exists")
        member.password = encoded.value
        member.salt = encoded.salt
        member.password_encryption = encoded.algorithm.value
        logger.info("Password changed for member %s (algorithm=%s)", member.id, encoded.algorithm.value)
        return encoded

    # ------------------------------------------------------------------
    # Bootstrap credential
    # ------------------------------------------------------------------

    def set_default_admin(self, username: str, password: str) -> bool:
        """Configure the bootstrap credential. Only the first call has any effect."""
        return self._config.set_default_admin(username, password)

    def check_default_admin(self, username: str, password: str) -> bool:
        return self._config.check_default_admin(username, password)

    def has_default_admin(self) -> bool:
        return self._config.has_default_admin()
