"""Request and response models for the Cipherion crypto API."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ExclusionOptions(BaseModel):
    """
    Field exclusion settings forwarded to the deep encrypt/decrypt endpoints.

    The matching itself happens server-side; these values are passed through
    untouched.

    Attributes:
        exclude_fields: Exact field paths to leave as-is (e.g. "profile.id", "users[0]")
        exclude_patterns: Field name patterns to leave as-is (e.g. "_id", "*_at")
        fail_gracefully: On decrypt, keep undecryptable fields instead of failing
    """

    model_config = ConfigDict(extra="forbid")

    exclude_fields: list[str] | None = None
    exclude_patterns: list[str] | None = None
    fail_gracefully: bool | None = None

    def to_payload(self, include_fail_gracefully: bool = True) -> dict[str, Any]:
        """Return only the options that were set, ready to merge into a request body."""
        payload = self.model_dump(exclude_none=True)
        if not include_fail_gracefully:
            payload.pop("fail_gracefully", None)
        return payload


class BaseResponse(BaseModel):
    """Envelope shared by every API response."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    status_code: int = Field(default=200, alias="statusCode")
    message: str = ""


class EncryptData(BaseModel):
    encrypted_output: str


class EncryptResponse(BaseResponse):
    data: EncryptData


class DecryptData(BaseModel):
    plaintext: str


class DecryptResponse(BaseResponse):
    data: DecryptData


class EncryptionMetadata(BaseModel):
    excluded_fields: list[str] = Field(default_factory=list)
    excluded_patterns: list[str] = Field(default_factory=list)
    operation: str = ""


class DecryptionMetadata(BaseModel):
    excluded_fields: list[str] = Field(default_factory=list)
    excluded_patterns: list[str] = Field(default_factory=list)
    failed_fields: list[str] = Field(default_factory=list)
    fail_gracefully: bool = False
    operation: str = ""


class DeepEncryptMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    encryption_metadata: EncryptionMetadata | None = Field(
        default=None, alias="encryptionMetadata"
    )
    total_fields: int = Field(default=0, alias="totalFields")
    billable_fields: int = Field(default=0, alias="billableFields")
    total_price: float = Field(default=0.0, alias="totalPrice")


class DeepDecryptMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    decryption_metadata: DecryptionMetadata | None = Field(
        default=None, alias="decryptionMetadata"
    )
    total_fields: int = Field(default=0, alias="totalFields")
    billable_fields: int = Field(default=0, alias="billableFields")
    total_price: float = Field(default=0.0, alias="totalPrice")


class DeepEncryptData(BaseModel):
    encrypted: Any
    meta: DeepEncryptMeta = Field(default_factory=DeepEncryptMeta)


class DeepEncryptResponse(BaseResponse):
    data: DeepEncryptData


class DeepDecryptData(BaseModel):
    data: Any
    meta: DeepDecryptMeta = Field(default_factory=DeepDecryptMeta)


class DeepDecryptResponse(BaseResponse):
    data: DeepDecryptData
