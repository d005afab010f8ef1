from pydantic import BaseModel, Field


class SkillCreate(BaseModel):
    slug: str = Field(min_length=1, max_length=80, pattern=r"^[a-z0-9][a-z0-9\-_.+#]*$")
    name: str = Field(min_length=1, max_length=120)


class SkillResponse(BaseModel):
    id: int
    slug: str
    name: str

    model_config = {"from_attributes": True}
