import os
from typing import List

import aiofiles
import aiofiles.os
from fastapi import UploadFile

from roomgate.core.exceptions import ValidationException


async def save_upload_to_temp(
    upload_file: UploadFile,
    max_file_size: int,
    accepted_content_types: List[str],
) -> str:
    """
    Write an uploaded file to a temporary path and return that path.

    The caller owns the file and must remove it with ``remove_temp``.

    Raises:
        ValidationException: If the content type is not accepted or the
            file is larger than ``max_file_size`` bytes
    """
    if upload_file.content_type not in accepted_content_types:
        raise ValidationException(
            detail=f"Invalid file format, supported {', '.join(accepted_content_types)}"
        )

    suffix = os.path.splitext(upload_file.filename or "")[1]
    size = 0
    async with aiofiles.tempfile.NamedTemporaryFile("wb", delete=False, suffix=suffix) as buffer:
        local_path = buffer.name
        while content := await upload_file.read(1024 * 64):
            size += len(content)
            if size > max_file_size:
                break
            await buffer.write(content)

    if size > max_file_size:
        await remove_temp(local_path)
        raise ValidationException(
            detail=f"File size is too big. Limit is {max_file_size / 1024 / 1024} MB"
        )
    return local_path


async def remove_temp(local_path: str) -> None:
    await aiofiles.os.remove(local_path)
