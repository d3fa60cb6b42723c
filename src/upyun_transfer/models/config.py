from typing import Annotated

from pydantic import AnyUrl, BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..constants import DEFAULT_ENDPOINT, DEFAULT_PART_SIZE, MAX_LIST_TRIES, TRAVERSAL_PAGE_SIZE


class StrictBaseModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
    )


class StrictBaseSettings(BaseSettings):
    model_config = SettingsConfigDict(
        extra="forbid", validate_assignment=True, use_enum_values=True, env_nested_delimiter="__"
    )


class RestOptions(StrictBaseModel):
    bucket: str
    """
    The name of the storage bucket (service).
    """

    operator: str
    """
    Operator name used to sign requests.
    """

    password: str
    """
    Operator password. Only its MD5 digest is used as signing key.
    """

    endpoint: str = DEFAULT_ENDPOINT
    """
    Host name of the REST API.
    """

    use_ssl: bool = True
    """
    Whether to talk HTTPS to the REST API.
    """

    timeout: Annotated[float, Field(gt=0)] = 60
    """
    Timeout in seconds for a single request.
    """

    proxy_url: AnyUrl | None = None
    """
    The proxy URL for REST requests (optional).
    """

    user_agent: str | None = None
    """
    Custom User-Agent header (optional).
    """


class TransferOptions(StrictBaseModel):
    resume_part_size: Annotated[int, Field(ge=0)] = DEFAULT_PART_SIZE
    """
    Part size for resumable uploads in bytes. Must be a multiple of 1 MiB; 0 selects the default.
    """

    max_resume_put_tries: Annotated[int, Field(ge=0)] = 3
    """
    Attempts per part before a resumable upload is suspended. 0 retries forever.
    """

    use_md5: bool = False
    """
    Send MD5 checksums with uploads so the service can verify them.
    """

    verify_resume: bool = True
    """
    Compare the checksum of the next pending part before resuming an upload.
    """

    max_list_tries: Annotated[int, Field(ge=0)] = MAX_LIST_TRIES
    """
    Attempts for listing requests that fail with network errors. 0 retries forever during recursive listings.
    """

    list_page_size: Annotated[int, Field(gt=0)] = TRAVERSAL_PAGE_SIZE
    """
    Number of entries requested per page during recursive listings.
    """

    max_list_level: int = -1
    """
    Depth of recursive listings. -1 recurses without limit, 1 lists only the first level.
    """

    max_list_objects: Annotated[int, Field(ge=0)] = 0
    """
    Stop recursive listings after this many entries. 0 means no limit.
    """

    queue_size: Annotated[int, Field(gt=0)] = 1000
    """
    Capacity of the queue that receives listing results.
    """

    progress: bool = True
    """
    Show progress bars for uploads and downloads.
    """

    @field_validator("max_list_level")
    @classmethod
    def check_max_list_level(cls, v):
        if v == 0 or v < -1:
            raise ValueError("max_list_level must be -1 (unlimited) or a positive depth")
        return v


class ConfigModel(StrictBaseSettings):
    model_config = SettingsConfigDict(env_prefix="upyun_")

    rest: RestOptions

    transfer: TransferOptions = TransferOptions()
