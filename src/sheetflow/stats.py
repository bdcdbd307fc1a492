from pydantic import BaseModel, Field, computed_field


class RunStats(BaseModel):
    """
    Counters for a single import/export call.
    Owned by that call; callers only ever receive copies.
    """

    total_rows: int = Field(default=0, ge=0)
    processed_rows: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)

    @computed_field
    @property
    def success_rate(self) -> float:
        if self.processed_rows == 0:
            return 100.0
        return (self.processed_rows - self.error_count) / self.processed_rows * 100

    def snapshot(self) -> dict:
        data = self.model_dump()
        data["success_rate"] = round(data["success_rate"], 2)
        return data

    def frozen_copy(self) -> "RunStats":
        return self.model_copy()
