"""암호화 인프라"""
from infrastructure.crypto.credential_cipher import CredentialCipher, get_cipher
