"""게이트웨이 비밀키 암호화

AES-256-CBC, 키 = scrypt(마스터 시크릿, 고정 솔트, 32바이트).
저장 형식은 hex(iv) + ":" + hex(암호문)이며 호출마다 새 IV를 쓰므로
같은 평문도 매번 다른 암호문이 된다.
"""
import os
import re
from functools import lru_cache

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from config import settings
from domain.exceptions import DecryptionError

SEPARATOR = ":"
IV_LENGTH = 16
KEY_LENGTH = 32

# Node crypto.scryptSync 기본값과 동일 (기존 암호문 호환)
SCRYPT_N = 2 ** 14
SCRYPT_R = 8
SCRYPT_P = 1

_CIPHERTEXT_PATTERN = re.compile(r"^[0-9a-fA-F]{32}:(?:[0-9a-fA-F]{32})+$")


def derive_key(secret: str, salt: str) -> bytes:
    kdf = Scrypt(salt=salt.encode(), length=KEY_LENGTH, n=SCRYPT_N, r=SCRYPT_R, p=SCRYPT_P)
    return kdf.derive(secret.encode())


class CredentialCipher:
    def __init__(self, secret: str = None, salt: str = None):
        self._key = derive_key(secret or settings.ENCRYPTION_SECRET, salt or settings.ENCRYPTION_SALT)

    @staticmethod
    def is_encrypted(value: str) -> bool:
        """이미 암호문 형식인지 확인 (재저장 시 이중 암호화 방지)"""
        return bool(value) and _CIPHERTEXT_PATTERN.match(value) is not None

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        encrypted = encryptor.update(data) + encryptor.finalize()
        return iv.hex() + SEPARATOR + encrypted.hex()

    def decrypt(self, ciphertext: str) -> str:
        if not ciphertext or SEPARATOR not in ciphertext:
            raise DecryptionError("암호문 형식 오류")
        iv_hex, encrypted_hex = ciphertext.split(SEPARATOR, 1)
        try:
            iv = bytes.fromhex(iv_hex)
            encrypted = bytes.fromhex(encrypted_hex)
            if len(iv) != IV_LENGTH or not encrypted or len(encrypted) % IV_LENGTH:
                raise ValueError("블록 길이 불일치")
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(encrypted) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode("utf-8")
        except ValueError as e:
            # 잘못된 hex, 패딩 오류, 마스터 시크릿 교체
            raise DecryptionError(str(e)) from e


@lru_cache()
def get_cipher() -> CredentialCipher:
    """설정 기반 cipher 싱글톤 (scrypt 키 유도는 한 번만)"""
    return CredentialCipher()
