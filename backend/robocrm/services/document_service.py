# Overview: Immutable PDF version snapshots for contracts and offers.

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Contract, ContractVersion, Offer, OfferVersion
from .storage_service import (
    BUCKET_CONTRACT_PDFS,
    BUCKET_OFFER_PDFS,
    BucketStorage,
    StorageError,
)


logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


class DocumentError(Exception):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class DocumentNotFoundError(DocumentError):
    pass


def next_version_number(version_model, parent_column, parent_id: int) -> int:
    """
    Highest existing version + 1. Versions are never deleted, so numbers are
    never reused.
    """
    current = (
        db.session.query(func.max(version_model.version_number))
        .filter(parent_column == parent_id)
        .scalar()
    )
    return (current or 0) + 1


def _store_version(
    *,
    storage: BucketStorage,
    bucket: str,
    version_model,
    parent_field: str,
    parent_id: int,
    document_number: str,
    pdf_bytes: bytes,
    notes: str | None,
    user_id: int | None,
):
    if not pdf_bytes or not pdf_bytes.startswith(PDF_MAGIC):
        raise DocumentError("Uploaded file is not a PDF")

    version_number = next_version_number(version_model, getattr(version_model, parent_field), parent_id)
    file_path = f"{parent_id}/{document_number}_v{version_number}.pdf"

    # Blob first, then the row
    storage.upload(bucket, file_path, pdf_bytes)

    row = version_model(
        version_number=version_number,
        file_path=file_path,
        notes=notes,
        generated_by_user_id=user_id,
        **{parent_field: parent_id},
    )
    db.session.add(row)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning("Version row insert failed; blob %s/%s left in storage", bucket, file_path)
        raise DocumentError(
            "Version number already taken",
            {"bucket": bucket, "file_path": file_path, "version_number": version_number},
        ) from e
    return row


def create_contract_version(
    storage: BucketStorage,
    contract_id: int,
    pdf_bytes: bytes,
    *,
    notes: str | None = None,
    user_id: int | None = None,
) -> ContractVersion:
    contract = db.session.get(Contract, contract_id)
    if contract is None:
        raise DocumentNotFoundError("Contract not found")
    return _store_version(
        storage=storage,
        bucket=BUCKET_CONTRACT_PDFS,
        version_model=ContractVersion,
        parent_field="contract_id",
        parent_id=contract.id,
        document_number=contract.contract_number,
        pdf_bytes=pdf_bytes,
        notes=notes,
        user_id=user_id,
    )


def create_offer_version(
    storage: BucketStorage,
    offer_id: int,
    pdf_bytes: bytes,
    *,
    notes: str | None = None,
    user_id: int | None = None,
) -> OfferVersion:
    offer = db.session.get(Offer, offer_id)
    if offer is None:
        raise DocumentNotFoundError("Offer not found")
    return _store_version(
        storage=storage,
        bucket=BUCKET_OFFER_PDFS,
        version_model=OfferVersion,
        parent_field="offer_id",
        parent_id=offer.id,
        document_number=offer.offer_number,
        pdf_bytes=pdf_bytes,
        notes=notes,
        user_id=user_id,
    )


def list_contract_versions(contract_id: int) -> list[ContractVersion]:
    return (
        db.session.query(ContractVersion)
        .filter_by(contract_id=contract_id)
        .order_by(ContractVersion.version_number.desc())
        .all()
    )


def list_offer_versions(offer_id: int) -> list[OfferVersion]:
    return (
        db.session.query(OfferVersion)
        .filter_by(offer_id=offer_id)
        .order_by(OfferVersion.version_number.desc())
        .all()
    )


def get_contract_version(contract_id: int, version_id: int) -> ContractVersion:
    row = db.session.query(ContractVersion).filter_by(id=version_id, contract_id=contract_id).first()
    if row is None:
        raise DocumentNotFoundError("Contract version not found")
    return row


def get_offer_version(offer_id: int, version_id: int) -> OfferVersion:
    row = db.session.query(OfferVersion).filter_by(id=version_id, offer_id=offer_id).first()
    if row is None:
        raise DocumentNotFoundError("Offer version not found")
    return row


def read_contract_pdf(storage: BucketStorage, version: ContractVersion) -> bytes:
    try:
        return storage.download(BUCKET_CONTRACT_PDFS, version.file_path)
    except StorageError:
        logger.exception("PDF for contract version %s is missing from storage", version.id)
        raise


def read_offer_pdf(storage: BucketStorage, version: OfferVersion) -> bytes:
    try:
        return storage.download(BUCKET_OFFER_PDFS, version.file_path)
    except StorageError:
        logger.exception("PDF for offer version %s is missing from storage", version.id)
        raise
