"""Base schemas shared by all request and response models."""

from pydantic import BaseModel, ConfigDict


class BaseSchema(BaseModel):
    """Base for all response schemas.

    from_attributes=True lets us build responses straight from the
    deployment dataclasses: DeploymentResponse.model_validate(record)
    """

    model_config = ConfigDict(from_attributes=True)
