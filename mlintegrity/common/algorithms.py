import enum
import hashlib
from typing import Any, Dict, cast

from mlintegrity.common.exception import UnsupportedAlgorithm


class DigestAlgorithm(str, enum.Enum):
    # Names compatible with tpm2-tools (man/common/alg.md)
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    @classmethod
    def _missing_(cls, value: object) -> Any:
        if isinstance(value, str):
            return _BY_NAME.get(value.strip().lower())
        return None

    @staticmethod
    def is_recognized(algorithm: str) -> bool:
        try:
            DigestAlgorithm.from_name(algorithm)
        except UnsupportedAlgorithm:
            return False
        return True

    @staticmethod
    def from_name(algorithm: str) -> "DigestAlgorithm":
        """Resolve an algorithm name, ignoring case

        @param algorithm: name such as "sha384", "SHA384" or "Sha384"
        @raise UnsupportedAlgorithm: the name does not match a supported algorithm
        """
        if isinstance(algorithm, DigestAlgorithm):
            return algorithm
        if not isinstance(algorithm, str):
            raise UnsupportedAlgorithm(algorithm=repr(algorithm))
        alg = _BY_NAME.get(algorithm.strip().lower())
        if alg is None:
            raise UnsupportedAlgorithm(algorithm=repr(algorithm))
        return alg

    def __hashfn(self, data: bytes) -> Any:
        return hashlib.new(self.value, data)

    def hash(self, data: bytes) -> bytes:
        return cast(bytes, self.__hashfn(data).digest())

    def get_size(self) -> int:
        """Digest size in bits"""
        return _DIGEST_SIZES[self] * 8

    def get_byte_size(self) -> int:
        return _DIGEST_SIZES[self]

    def get_hex_size(self) -> int:
        return _DIGEST_SIZES[self] * 2

    def get_start_hash(self) -> bytes:
        return b"\x00" * _DIGEST_SIZES[self]

    def extend(self, accumulator: bytes, data: bytes) -> bytes:
        """Emulate a PCR extend: hash(accumulator || data)"""
        return self.hash(accumulator + data)

    def prefix(self) -> str:
        return f"{self.value}:"

    def __str__(self) -> str:
        return self.value.upper()


_BY_NAME: Dict[str, DigestAlgorithm] = {alg.value: alg for alg in DigestAlgorithm}
# "sha-256" and friends appear in some manifests
_BY_NAME.update({alg.value.replace("sha", "sha-"): alg for alg in DigestAlgorithm if alg.value.startswith("sha")})

_DIGEST_SIZES: Dict[DigestAlgorithm, int] = {
    DigestAlgorithm.MD5: 16,
    DigestAlgorithm.SHA1: 20,
    DigestAlgorithm.SHA256: 32,
    DigestAlgorithm.SHA384: 48,
    DigestAlgorithm.SHA512: 64,
}
