"""Request schemas, lookup results and verification results."""

from enum import IntEnum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class VerifyUserRequest(BaseModel):
    """Body of POST /verify/user."""

    model_config = ConfigDict(frozen=True)

    token: str = Field(min_length=1)
    matrix_server_name: Optional[str] = None


class VerifyUserInRoomRequest(VerifyUserRequest):
    """Body of POST /verify/user/in-room."""

    room_id: str = Field(min_length=1)


class LookupFailure(IntEnum):
    """Reason a remote lookup did not produce an answer.

    Only used for logging and metrics. Every reason yields the same negative result.
    """

    transport = 1
    timeout = 2
    status = 3
    malformed = 4
    resolution = 5
    server_mismatch = 6


class IdentityLookup(BaseModel):
    """Result of an OpenID userinfo lookup: either a subject or a failure reason."""

    subject: Optional[str] = None
    failure: Optional[LookupFailure] = None

    @staticmethod
    def found(subject: str) -> "IdentityLookup":
        return IdentityLookup(subject=subject)

    @staticmethod
    def failed(reason: LookupFailure) -> "IdentityLookup":
        return IdentityLookup(failure=reason)


class MembersLookup(BaseModel):
    """Result of a room member lookup: either a member list or a failure reason."""

    members: List[str] = Field(default_factory=list)
    failure: Optional[LookupFailure] = None

    @staticmethod
    def found(members: List[str]) -> "MembersLookup":
        return MembersLookup(members=members)

    @staticmethod
    def failed(reason: LookupFailure) -> "MembersLookup":
        return MembersLookup(failure=reason)


class VerificationResult(BaseModel):
    """
    Outcome of a verification request.

    Attributes:
        user_verified: Whether the token belongs to a known user
        room_membership_verified: Whether that user is in the requested room.
            None when no room check was requested.
        user_id: The verified user ID, set if and only if user_verified is true
        failure: Why verification failed, if it did. Not part of the response body.
    """

    model_config = ConfigDict(frozen=True)

    user_verified: bool
    room_membership_verified: Optional[bool] = None
    user_id: Optional[str] = None
    failure: Optional[LookupFailure] = None

    @model_validator(mode="after")
    def check_user_id(self) -> "VerificationResult":
        if self.user_verified != (self.user_id is not None):
            raise ValueError("user_id must be set if and only if user_verified is true")
        return self

    @staticmethod
    def unverified(
        room: bool = False, failure: Optional[LookupFailure] = None
    ) -> "VerificationResult":
        return VerificationResult(
            user_verified=False,
            room_membership_verified=False if room else None,
            user_id=None,
            failure=failure,
        )

    def to_response(self) -> Dict[str, Any]:
        results: Dict[str, bool] = {"user": self.user_verified}
        if self.room_membership_verified is not None:
            results["room_membership"] = self.room_membership_verified
        return {"results": results, "user_id": self.user_id}
