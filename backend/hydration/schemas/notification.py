"""Push notification payload as read by the browser service worker."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NotificationAction(BaseModel):
    action: str
    title: str
    icon: str | None = None


class NotificationData(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    url: str = "/"
    action: str = "hydration-reminder"
    timestamp: int  # epoch milliseconds
    is_test: bool = Field(False, alias="isTest")


class NotificationPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str
    body: str
    icon: str = "/icon-192x192.png"
    badge: str = "/badge-72x72.png"
    tag: str
    require_interaction: bool = Field(False, alias="requireInteraction")
    silent: bool = False
    data: NotificationData
    actions: list[NotificationAction] = Field(default_factory=list)

    @property
    def is_test(self) -> bool:
        """Test payloads are flagged in data and, for older clients, in the tag."""
        return self.data.is_test or "test" in self.tag

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)
