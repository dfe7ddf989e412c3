"""AdmissionReview envelope models and the orchestrator's decision type."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

ADMISSION_API_VERSION = "admission.k8s.io/v1"
ADMISSION_KIND = "AdmissionReview"


class GroupVersionKind(BaseModel):
    """Kind of the object under admission (``core/v1 Pod`` has an empty group)."""

    group: str = ""
    version: str = ""
    kind: str = ""


class AdmissionRequest(BaseModel):
    """The ``request`` half of an AdmissionReview: only the fields we read."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    uid: str = Field(..., min_length=1)
    kind: GroupVersionKind = Field(default_factory=GroupVersionKind)
    operation: str = "CREATE"
    namespace: str | None = None
    name: str | None = None
    object: dict[str, Any] | None = None
    dry_run: bool = Field(default=False, alias="dryRun")


class AdmissionReview(BaseModel):
    """Incoming AdmissionReview as sent by the API server."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    api_version: str = Field(default=ADMISSION_API_VERSION, alias="apiVersion")
    kind: str = ADMISSION_KIND
    request: AdmissionRequest


@dataclass
class AdmissionDecision:
    """Allow/deny plus optional RFC 6902 patch for one admission request."""

    allowed: bool = True
    patch: list[dict[str, Any]] | None = None
    message: str | None = None
    warnings: list[str] = field(default_factory=list)

    @property
    def patched(self) -> bool:
        return bool(self.patch)

    def to_response(self, uid: str) -> dict[str, Any]:
        """Render the ``response`` object of an AdmissionReview."""
        response: dict[str, Any] = {"uid": uid, "allowed": self.allowed}
        if self.patch:
            response["patchType"] = "JSONPatch"
            response["patch"] = base64.b64encode(
                json.dumps(self.patch).encode("utf-8")
            ).decode("ascii")
        if self.message:
            response["status"] = {"message": self.message}
        if self.warnings:
            response["warnings"] = list(self.warnings)
        return response

    def to_review(self, uid: str, api_version: str = ADMISSION_API_VERSION) -> dict[str, Any]:
        """Render a complete AdmissionReview response document."""
        return {
            "apiVersion": api_version,
            "kind": ADMISSION_KIND,
            "response": self.to_response(uid),
        }
