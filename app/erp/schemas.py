# app/erp/schemas.py

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NAVSetup(BaseModel):
    """
    Folder locations configured in the ERP. Cached per entry number in
    snake_case; the ERP itself answers with OData field names.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    file_location_in: str = Field(
        "", validation_alias=AliasChoices("file_location_in", "File_Location_In", "FileLocationIn")
    )
    file_location_process: str = Field(
        "",
        validation_alias=AliasChoices(
            "file_location_process", "File_Location_Process", "FileLocationProcess"
        ),
    )
    file_location_out: str = Field(
        "", validation_alias=AliasChoices("file_location_out", "File_Location_Out", "FileLocationOut")
    )


class ERPLogEntry(BaseModel):
    """Invoice log entry mirrored to the ERP on every webhook delivery"""
    model_config = ConfigDict(populate_by_name=True)

    entry_no: int = Field(0, serialization_alias="EntryNo")
    document_id: str = Field("", serialization_alias="DocumentId")
    invoice_number: str = Field("", serialization_alias="InvoiceNo")
    filename: str = Field("", serialization_alias="Filename")
    file_path_in: str = Field("", serialization_alias="FilePathIn")
    file_path_process: str = Field("", serialization_alias="FilePathProcess")
    file_path_out: str = Field("", serialization_alias="FilePathOut")
    signing_status: str = Field("", serialization_alias="SigningStatus")
    stamping_status: str = Field("", serialization_alias="StampingStatus")
    signer1_signing_status: Optional[str] = Field(None, serialization_alias="Signer1SigningStatus")
    signer1_signing_date: Optional[str] = Field(None, serialization_alias="Signer1SigningDate")
    signer2_signing_status: Optional[str] = Field(None, serialization_alias="Signer2SigningStatus")
    signer2_signing_date: Optional[str] = Field(None, serialization_alias="Signer2SigningDate")
    signer3_signing_status: Optional[str] = Field(None, serialization_alias="Signer3SigningStatus")
    signer3_signing_date: Optional[str] = Field(None, serialization_alias="Signer3SigningDate")

    def to_odata(self) -> dict:
        # DocumentId is only used for logging and lookups on our side
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"document_id"})


class ERPAPILog(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status_description: str = Field(..., serialization_alias="StatusDescription")
    date_time: str = Field(..., serialization_alias="DateTime")
    invoice_no: str = Field("", serialization_alias="InvoiceNo")
    body: str = Field("", serialization_alias="Body")
