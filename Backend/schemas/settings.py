from pydantic import BaseModel, Field, field_validator

from services.thresholds import DEFAULT_EMAIL_THRESHOLDS


class EmailSettingsUpdate(BaseModel):
    default_email_thresholds: list[int] = Field(min_length=1, max_length=10)

    @field_validator("default_email_thresholds")
    @classmethod
    def validate_thresholds(cls, value: list[int]) -> list[int]:
        if any(v <= 0 or v > 365 for v in value):
            raise ValueError("Thresholds must be between 1 and 365 days")
        return sorted(set(value), reverse=True)


class EmailSettingsOut(BaseModel):
    default_email_thresholds: list[int] = list(DEFAULT_EMAIL_THRESHOLDS)
    is_default: bool = True
