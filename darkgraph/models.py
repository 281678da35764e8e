"""
Wire models for serialized artifacts.

Pydantic models for the JSON shapes that cross the network boundary. They
check hex encodings and field lengths so that malformed input is rejected
before it reaches the cryptographic code, and convert to the immutable
dataclasses the library works with.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

from .encryption import EncryptedPayload
from .trust_signal import TrustSignal


_HEX = re.compile(r"[0-9a-f]*")


def _check_hex(value: str, length: int = 0) -> str:
    value = value.lower()
    if not _HEX.fullmatch(value) or len(value) % 2:
        raise ValueError("must be hex")
    if length and len(value) != length:
        raise ValueError(f"must be {length} hex characters, got {len(value)}")
    return value


class EncryptedPayloadModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    ephemeral_public_key: str = Field(alias="ephemeralPublicKey")
    ciphertext: str

    @field_validator("ephemeral_public_key")
    @classmethod
    def _key_hex(cls, value: str) -> str:
        return _check_hex(value, 64)

    @field_validator("ciphertext")
    @classmethod
    def _ciphertext_hex(cls, value: str) -> str:
        return _check_hex(value)

    def to_payload(self) -> EncryptedPayload:
        return EncryptedPayload(
            ephemeral_public_key=bytes.fromhex(self.ephemeral_public_key),
            ciphertext=bytes.fromhex(self.ciphertext)
        )


class TrustSignalSubmission(BaseModel):
    """Trust signal as submitted by a peer"""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    truster: str
    trustee_commitment: str = Field(alias="trusteeCommitment")
    encrypted_trustee: EncryptedPayloadModel = Field(alias="encryptedTrustee")
    signature: str
    weight: float = Field(gt=0, le=1)
    timestamp: StrictInt = Field(ge=0)

    @field_validator("truster", "trustee_commitment")
    @classmethod
    def _key_hex(cls, value: str) -> str:
        return _check_hex(value, 64)

    @field_validator("signature")
    @classmethod
    def _signature_hex(cls, value: str) -> str:
        return _check_hex(value, 128)

    def to_signal(self) -> TrustSignal:
        return TrustSignal(
            truster=bytes.fromhex(self.truster),
            trustee_commitment=bytes.fromhex(self.trustee_commitment),
            encrypted_trustee=self.encrypted_trustee.to_payload(),
            signature=bytes.fromhex(self.signature),
            weight=self.weight,
            timestamp=self.timestamp
        )

    @classmethod
    def from_signal(cls, signal: TrustSignal) -> 'TrustSignalSubmission':
        return cls.model_validate(signal.to_dict())
