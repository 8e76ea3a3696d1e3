"""auth/ -- Password encoding policy and credential verification for Keyward.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
The CLI (main.py) imports from auth/, not the other way around.
"""
