from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class ProvisioningScope(BaseModel):
    """
    What to provision: a whole edition, one team, or one user's team
    (`user_id` requires `team_id`).
    """
    model_config = {"frozen": True}

    edition_id: UUID
    team_id: UUID | None = None
    user_id: UUID | None = None

    @model_validator(mode="after")
    def _user_needs_team(self):
        if self.user_id is not None and self.team_id is None:
            raise ValueError("user_id requires team_id")
        return self


class ProvisioningReport(BaseModel):
    teams_processed: int = 0
    conversations_created: int = 0
    participants_added: int = 0
    participants_reactivated: int = 0
    failed_teams: list[UUID] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed_teams
