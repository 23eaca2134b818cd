from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from typing import Optional
from app.core.access import Actor
from app.core.database import get_db
from app.core.errors import ValidationError
from app.core.security import get_current_actor
from app.core.storage import folder_for, upload_image, validate_image_file
from app.models.models import User
from app.schemas.schemas import UploadResponse

router = APIRouter()


@router.post("/image", response_model=UploadResponse)
def upload_file(
    file: UploadFile = File(...),
    type: Optional[str] = Form(None),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db)
):
    """
    Upload an image to cloud storage.

    type=avatar also sets the uploader's avatar; type=salon and
    type=payment only pick the destination folder.
    """
    content = file.file.read()
    is_valid, error = validate_image_file(file.content_type, len(content))
    if not is_valid:
        raise ValidationError(error)

    file.file.seek(0)
    url = upload_image(file.file, file.filename or "upload", folder=folder_for(type, actor.user_id))

    if type == "avatar":
        user = db.query(User).filter(User.id == actor.user_id).first()
        if user:
            user.avatar_url = url
            db.commit()

    return UploadResponse(url=url)
