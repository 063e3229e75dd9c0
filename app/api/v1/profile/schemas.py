from pydantic import BaseModel, Field


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, description="At least 8 characters")


class ChangePasswordResponse(BaseModel):
    success: bool = True
    message: str
