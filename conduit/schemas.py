from pydantic import BaseModel, ConfigDict, Field


# --- User ---

class UserRegistration(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8)


class RegisterRequest(BaseModel):
    user: UserRegistration


class UserLogin(BaseModel):
    email: str
    password: str


class LoginRequest(BaseModel):
    user: UserLogin


class UserUpdate(BaseModel):
    # Omitted (or null) fields keep their stored value.
    username: str | None = Field(None, min_length=1, max_length=100)
    email: str | None = Field(None, min_length=3, max_length=255)
    password: str | None = Field(None, min_length=8)
    bio: str | None = None
    image: str | None = None


class UpdateUserRequest(BaseModel):
    user: UserUpdate


# --- Article ---

class ArticleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    description: str
    body: str
    tag_list: list[str] = Field(default_factory=list, alias="tagList")

    model_config = ConfigDict(populate_by_name=True)


class NewArticleRequest(BaseModel):
    article: ArticleCreate


class ArticleUpdate(BaseModel):
    # Tags are not editable after creation.
    title: str | None = Field(None, min_length=1, max_length=300)
    description: str | None = None
    body: str | None = None


class UpdateArticleRequest(BaseModel):
    article: ArticleUpdate


# --- Comment ---

class CommentCreate(BaseModel):
    body: str = Field(min_length=1)


class NewCommentRequest(BaseModel):
    comment: CommentCreate
