"""
Lifecycle Exceptions

Custom exception classes for access and lifecycle errors.
These provide structured error handling across the lifecycle module and are
rendered by the app's exception handler as ``JSONResponse(status_code, to_dict())``.
"""


class LifecycleError(Exception):
    """
    Base exception for all access/lifecycle errors.

    All lifecycle exceptions inherit from this class, allowing for
    broad exception handling when needed.
    """

    status_code: int = 400

    def __init__(
        self,
        message: str,
        code: str = "LIFECYCLE_ERROR",
        details: dict = None,
        status_code: int = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.message,
            'code': self.code,
            **self.details,
        }


class AccessRequiredError(LifecycleError):
    """
    Raised when an access-gated action is attempted without access.

    The UI treats this as "subscribe to continue".
    """

    status_code = 403

    def __init__(
        self,
        message: str = "Active subscription or trial required",
        has_access: bool = False,
        trial_status: str = None,
        subscription_status: str = None,
    ):
        super().__init__(
            message=message,
            code="ACCESS_REQUIRED",
            details={
                'has_access': has_access,
                'trial_status': trial_status,
                'subscription_status': subscription_status,
            }
        )


class PermissionDeniedError(LifecycleError):
    """Raised when a caller acts on an identity other than their own."""

    status_code = 403

    def __init__(self, message: str = "You can only perform this action on your own account"):
        super().__init__(message=message, code="FORBIDDEN")


class ProtectedAccountError(LifecycleError):
    """Raised when a destructive action targets the protected admin identity."""

    status_code = 403

    def __init__(self, message: str = "This account is protected and cannot be deleted"):
        super().__init__(message=message, code="PROTECTED_ACCOUNT")


class WorkspaceError(LifecycleError):
    """Base class for workspace (Axie Studio) failures."""

    status_code = 502


class WorkspaceAlreadyExistsError(WorkspaceError):
    """Raised when the workspace product already has an account for the email."""

    status_code = 409

    def __init__(self, email: str = None):
        super().__init__(
            message="A workspace account with this email already exists",
            code="ALREADY_EXISTS",
            details={'email': email} if email else {}
        )
        self.email = email


class WorkspaceUpstreamError(WorkspaceError):
    """
    Raised when the workspace API is unreachable or answers with an error.

    Examples:
        - Login to the workspace API failed
        - Network timeout
        - Unexpected status code
    """

    def __init__(
        self,
        message: str = "Workspace service error",
        status: int = None,
    ):
        super().__init__(
            message=message,
            code="UPSTREAM_ERROR",
            details={'upstream_status': status} if status else {}
        )
        self.status = status


class StripeUpstreamError(LifecycleError):
    """Raised when a Stripe API call fails."""

    status_code = 502

    def __init__(self, message: str = "Payment provider error", stripe_error: str = None):
        super().__init__(message=message, code="UPSTREAM_ERROR")
        # Kept off the response body
        self.stripe_error = stripe_error


class SubscriptionError(LifecycleError):
    """
    Raised when there's an issue with subscription self-service.

    Examples:
        - No subscription found
        - Subscription already cancelled
    """

    def __init__(
        self,
        message: str = "Subscription error",
        code: str = "SUBSCRIPTION_ERROR",
        status_code: int = 400,
    ):
        super().__init__(message=message, code=code, status_code=status_code)


class TrialError(LifecycleError):
    """
    Raised when there's an issue with trial management.

    Examples:
        - Trial already active
        - Trial already used (returning user)
    """

    def __init__(
        self,
        message: str = "Trial error",
        code: str = "TRIAL_ERROR",
        requires_subscription: bool = False,
    ):
        super().__init__(
            message=message,
            code=code,
            details={'requires_subscription': True} if requires_subscription else {}
        )
        self.requires_subscription = requires_subscription


class DeletionAbortedError(LifecycleError):
    """Raised when the deletion history cannot be recorded; nothing was deleted."""

    status_code = 500

    def __init__(self):
        super().__init__(
            message="Failed to record deletion history - operation aborted for security",
            code="HISTORY_RECORD_FAILED",
        )


class IdentityDeletionError(LifecycleError):
    """Raised when the authentication identity could not be deleted."""

    status_code = 500

    def __init__(self, message: str = "Internal server error occurred"):
        super().__init__(
            message="Failed to delete user account",
            code="DELETION_FAILED",
            details={'message': message}
        )


class WebhookError(LifecycleError):
    """
    Raised when there's an issue processing a webhook.

    Examples:
        - Payload does not match the event schema
        - Processing failed
    """

    def __init__(
        self,
        message: str = "Webhook processing error",
        code: str = "WEBHOOK_ERROR",
        event_id: str = None,
        event_type: str = None
    ):
        details = {}
        if event_id:
            details['event_id'] = event_id
        if event_type:
            details['event_type'] = event_type

        super().__init__(
            message=message,
            code=code,
            details=details
        )
        self.event_id = event_id
        self.event_type = event_type
