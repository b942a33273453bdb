"""Song endpoints."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status

from magical_music.api.dependencies import get_form_fields, get_uploaded_files
from magical_music.domain.value_objects import StagedFile

router = APIRouter()


# Hey future me - the upload middleware already streamed the files into tmp/ and enforced
# the size ceiling; we only get here for complete uploads. The files stay in tmp/ until
# whoever processes them moves them away (or the hourly sweep deletes them).
@router.post("", status_code=status.HTTP_201_CREATED)
async def upload_song(
    files: dict[str, list[StagedFile]] = Depends(get_uploaded_files),
    form: dict[str, str] = Depends(get_form_fields),
) -> dict[str, Any]:
    """Accept a song upload (`audioFile`, optional `imageFile`) plus form fields."""
    if not files.get("audioFile"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="audioFile is required")
    return {
        "fields": form,
        "files": [
            {
                "field": staged.field_name,
                "filename": staged.filename,
                "contentType": staged.content_type,
                "size": staged.size,
                "storedAs": staged.path.name,
            }
            for field_files in files.values()
            for staged in field_files
        ],
    }
