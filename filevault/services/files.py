import logging
from typing import Optional

from fastapi import UploadFile
from sqlalchemy import select, func, or_, not_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.errors import Forbidden, NotFound, StorageError, Unauthorized, ValidationError
from filevault.models.file import File
from filevault.models.user import User
from filevault.services.storage import DiskStorage

logger = logging.getLogger(__name__)

FILE_KINDS = {
    "image": ("jpg", "jpeg", "png", "gif"),
    "document": ("pdf", "doc", "docx", "txt"),
}

SORT_COLUMNS = {
    "date": File.created_at,
    "name": File.original_name,
    "size": File.file_size,
}


def _extension_clause(extensions):
    return or_(*[File.filename.like(f"%.{ext}") for ext in extensions])


class FileStore:
    """Metadata rows only; never touches the filesystem."""

    @staticmethod
    async def insert_metadata(db: AsyncSession, **fields) -> File:
        db_file = File(**fields)
        db.add(db_file)
        try:
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error("Failed to insert file metadata: %s", e)
            raise StorageError("Failed to save file information")
        await db.refresh(db_file)
        return db_file

    @staticmethod
    async def get_by_id(db: AsyncSession, file_id: int) -> File:
        result = await db.execute(select(File).where(File.id == file_id))
        db_file = result.scalar_one_or_none()
        if not db_file:
            raise NotFound("File not found")
        return db_file

    @staticmethod
    async def list_by_owner(
        db: AsyncSession,
        owner_id: int,
        sort: str = "date",
        order: str = "desc",
        kind: str = "all",
        search: Optional[str] = None,
    ) -> list[File]:
        query = select(File).where(File.user_id == owner_id)

        if kind in FILE_KINDS:
            query = query.where(_extension_clause(FILE_KINDS[kind]))
        elif kind == "other":
            known = [ext for exts in FILE_KINDS.values() for ext in exts]
            query = query.where(not_(_extension_clause(known)))

        if search and search.strip():
            query = query.where(File.original_name.icontains(search.strip(), autoescape=True))

        column = SORT_COLUMNS.get(sort, File.created_at)
        if order == "asc":
            query = query.order_by(column.asc(), File.id.asc())
        else:
            query = query.order_by(column.desc(), File.id.desc())

        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def update_visibility(db: AsyncSession, file_id: int, is_public: bool) -> File:
        db_file = await FileStore.get_by_id(db, file_id)
        db_file.is_public = is_public
        await db.commit()
        await db.refresh(db_file)
        return db_file

    @staticmethod
    async def delete_by_id(db: AsyncSession, file_id: int) -> None:
        db_file = await FileStore.get_by_id(db, file_id)
        await db.delete(db_file)
        await db.commit()

    @staticmethod
    async def stats_by_owner(db: AsyncSession, owner_id: int) -> dict:
        result = await db.execute(
            select(
                func.count(File.id),
                func.coalesce(func.sum(File.file_size), 0),
                func.count(File.id).filter(File.is_public.is_(True)),
            ).where(File.user_id == owner_id)
        )
        total_files, total_size, public_files = result.one()
        return {
            "total_files": total_files,
            "total_size_bytes": int(total_size),
            "public_files": public_files,
        }


class FileService:
    """Upload, read, delete and visibility operations for authenticated users.

    Disk and database are updated without a shared transaction. Upload
    writes the file first and removes it again if the metadata insert
    fails; delete removes the row first and treats a leftover disk file as
    acceptable.
    """

    def __init__(self, storage: DiskStorage):
        self.storage = storage

    async def upload(self, db: AsyncSession, owner: User, upload: Optional[UploadFile]) -> File:
        if upload is None or not upload.filename:
            raise ValidationError("Please upload a file")

        stored = await self.storage.save(upload)
        try:
            db_file = await FileStore.insert_metadata(
                db,
                filename=stored.filename,
                original_name=stored.original_name,
                file_path=stored.file_path,
                file_size=stored.file_size,
                mime_type=stored.mime_type,
                user_id=owner.id,
            )
        except StorageError:
            self.storage.remove(stored.file_path)
            logger.warning("Rolled back upload %s for user %s", stored.file_path, owner.id)
            raise

        logger.info("User %s uploaded %s (%d bytes) as file %s",
                    owner.id, stored.original_name, stored.file_size, db_file.id)
        return db_file

    async def retrieve(self, db: AsyncSession, requester: Optional[User], file_id: int) -> File:
        db_file = await FileStore.get_by_id(db, file_id)
        if db_file.is_public:
            return db_file
        if requester is None:
            raise Unauthorized("Not authorized, no token")
        if db_file.user_id != requester.id:
            raise Forbidden("Not authorized to access this file")
        return db_file

    async def open_download(self, db: AsyncSession, requester: Optional[User], file_id: int) -> File:
        db_file = await self.retrieve(db, requester, file_id)
        if not self.storage.exists(db_file.file_path):
            raise NotFound("File not found on server")
        return db_file

    async def _owned(self, db: AsyncSession, requester: User, file_id: int, action: str) -> File:
        db_file = await FileStore.get_by_id(db, file_id)
        if db_file.user_id != requester.id:
            raise Forbidden(f"Not authorized to {action} this file")
        return db_file

    async def delete(self, db: AsyncSession, requester: User, file_id: int) -> None:
        db_file = await self._owned(db, requester, file_id, "delete")
        file_path = db_file.file_path

        await FileStore.delete_by_id(db, file_id)

        if self.storage.exists(file_path) and not self.storage.remove(file_path):
            logger.warning("File %s deleted but %s was left on disk", file_id, file_path)
        logger.info("User %s deleted file %s", requester.id, file_id)

    async def toggle_public(self, db: AsyncSession, requester: User, file_id: int) -> File:
        db_file = await self._owned(db, requester, file_id, "modify")
        return await FileStore.update_visibility(db, file_id, not db_file.is_public)
