"""Part size planning for multipart uploads."""

from .constants import DEFAULT_PART_SIZE, MAX_PART_NUM
from .exceptions import ValidationError
from .models.objects import PartPlan


def plan_parts(part_size: int, total_size: int) -> PartPlan:
    """
    Validate the requested part size and derive the number of parts.

    :param part_size: Requested part size in bytes, 0 selects the default size
    :param total_size: Total size of the payload in bytes
    :returns: The validated part plan
    :raises ValidationError: if the part size is too small, not a multiple of the base unit,
        or would result in more than the maximum number of parts
    """
    if part_size <= 0:
        part_size = DEFAULT_PART_SIZE
    if part_size < DEFAULT_PART_SIZE:
        raise ValidationError(f"The minimum part size is {DEFAULT_PART_SIZE} bytes, got {part_size}")
    if part_size % DEFAULT_PART_SIZE != 0:
        raise ValidationError(f"The part size must be a multiple of {DEFAULT_PART_SIZE} bytes, got {part_size}")

    part_count = -(-max(total_size, 0) // part_size)
    if part_count > MAX_PART_NUM:
        raise ValidationError(
            f"{total_size} bytes in parts of {part_size} bytes need {part_count} parts, "
            f"the maximum is {MAX_PART_NUM}"
        )
    return PartPlan(part_size=part_size, part_count=part_count)
