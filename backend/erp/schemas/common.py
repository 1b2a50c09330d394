"""通用Schema"""
from typing import Optional
from pydantic import BaseModel, Field


class Address(BaseModel):
    """地址"""
    street: Optional[str] = Field(None, max_length=200, description="街道")
    city: Optional[str] = Field(None, max_length=100, description="城市")
    state: Optional[str] = Field(None, max_length=50, description="州/省")
    zip: Optional[str] = Field(None, max_length=20, description="邮编")
    country: Optional[str] = Field(None, max_length=50, description="国家")


class MessageResponse(BaseModel):
    """操作结果"""
    message: str
