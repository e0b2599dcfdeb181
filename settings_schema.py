from pydantic import BaseModel, Field, ValidationError


class AnalyticsSettings(BaseModel):
    pin_limit: int = Field(5, ge=1)
    evolution_weeks: int = Field(4, ge=1)
    sleep_weeks: int = Field(8, ge=1)
    measurement_weeks: int = Field(8, ge=1)
    uncategorized_dimension: str = "OTHER"
    load_unit: str = "kg"
    dashboard_days: int = Field(30, ge=1)
    dashboard_pr_days: int = Field(7, ge=1)
    dashboard_pr_limit: int = Field(5, ge=1)
    history_limit_default: int = Field(5, ge=1)
    history_limit_max: int = Field(20, ge=1)


def validate_settings(data: dict) -> AnalyticsSettings:
    try:
        return AnalyticsSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
