"""
Password Expiry Remediation
===========================
Clears the "password never expires" and "cannot change password" flags on
domain accounts and notifies each affected user by email.

WARNING: This tool WRITES to the directory. Only pwdLastSet and
         userAccountControl are ever modified.
"""

__version__ = "1.0.0"
__author__ = "IT Security Engineering"
