"""Exception hierarchy for the message feed client.

This module defines all exceptions that can be raised by the message feed
library. The hierarchy is designed to allow catching specific error types or
broader categories as needed.

Exception Hierarchy:
    MessageFeedError (base)
    ├── UnreachableEndpoint - Network/connection failures
    │   └── RequestTimeout - Request timeout
    ├── APIError - HTTP endpoint returned an error response
    │   └── ServerError (HTTP 5xx)
    ├── RpcError - Ledger node returned a JSON-RPC error object
    ├── MalformedAccount - Account data violates its binary layout
    ├── AccountNotFound - Identity has no backing account
    ├── ChainCycleError - A message pointer repeated during traversal
    ├── TransactionError - A compound ledger operation aborted
    │   ├── InsufficientFunds
    │   ├── TransactionRejected
    │   └── ConfirmationTimeout
    └── UnsupportedLoginMethod - Configuration names an unknown login method

Example:
    Catching specific errors::

        try:
            await post_message(connection, user, "hi", previous)
        except TransactionRejected as e:
            print(f"Program refused the post: {e.message}")

    Catching all ledger operation failures::

        try:
            await create_user(connection, program_id, anchor)
        except TransactionError as e:
            print(f"Nothing was written: {e}")
"""

from typing import Any


class MessageFeedError(Exception):
    """Base exception for all message feed errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class UnreachableEndpoint(MessageFeedError):
    """Failed to reach a remote endpoint.

    Raised when the client cannot establish a connection to the config
    endpoint, the login endpoint, or the ledger node. The bootstrap poller
    treats this as "not ready yet" and retries.

    Attributes:
        message: Human-readable error description.
        url: The URL that failed to connect.
        cause: The underlying exception that caused the connection failure.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.url = url
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} (url: {self.url})"
        return self.message


class RequestTimeout(UnreachableEndpoint):
    """Request timed out.

    Attributes:
        message: Human-readable error description.
        timeout: The timeout value in seconds.
        url: The URL that timed out.
    """

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        url: str | None = None,
    ) -> None:
        self.timeout = timeout
        super().__init__(message, url=url)

    def __str__(self) -> str:
        parts = []
        if self.timeout is not None:
            parts.append(f"timeout: {self.timeout}s")
        if self.url:
            parts.append(f"url: {self.url}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class APIError(MessageFeedError):
    """An HTTP endpoint returned an error status code.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status code from the server.
        error_type: Error type/code from the response body (if available).
        details: Additional error details from the response (if available).
        response_body: Raw response body for debugging.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        error_type: str | None = None,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        self.response_body = response_body
        super().__init__(message)

    def __str__(self) -> str:
        if self.error_type:
            return f"[HTTP {self.status_code}] [{self.error_type}] {self.message}"
        return f"[HTTP {self.status_code}] {self.message}"


class ServerError(APIError):
    """Server-side error (HTTP 5xx).

    The config endpoint answers 5xx while the feed backend is still starting,
    so the bootstrap poller retries these.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            error_type="server_error",
            details=details,
            response_body=response_body,
        )


class RpcError(MessageFeedError):
    """The ledger node answered a JSON-RPC call with an error object.

    Attributes:
        message: Error message reported by the node.
        method: The RPC method that failed.
        code: JSON-RPC error code.
        data: Optional structured error data (e.g. simulation logs).
    """

    def __init__(
        self,
        message: str,
        method: str,
        code: int | None = None,
        data: Any = None,
    ) -> None:
        self.method = method
        self.code = code
        self.data = data
        super().__init__(message)

    def __str__(self) -> str:
        if self.code is not None:
            return f"{self.method} failed [{self.code}]: {self.message}"
        return f"{self.method} failed: {self.message}"


class MalformedAccount(MessageFeedError):
    """Account data does not match the expected binary layout.

    Fatal to the single read, not to the process.

    Attributes:
        pubkey: The account that failed to decode, when known.
        reason: What was structurally wrong.
    """

    def __init__(self, reason: str, pubkey: Any = None) -> None:
        self.pubkey = pubkey
        self.reason = reason
        if pubkey is not None:
            message = f"Malformed account {pubkey}: {reason}"
        else:
            message = f"Malformed account: {reason}"
        super().__init__(message)


class AccountNotFound(MessageFeedError):
    """The identity has no backing account on the ledger yet.

    Callers treat this as "does not exist yet", not as corruption.

    Attributes:
        pubkey: The identity that was looked up.
    """

    def __init__(self, pubkey: Any) -> None:
        self.pubkey = pubkey
        super().__init__(f"Account {pubkey} not found")


class ChainCycleError(MessageFeedError):
    """A message pointer repeated while traversing the feed.

    Attributes:
        pubkey: The pointer that was seen twice.
    """

    def __init__(self, pubkey: Any) -> None:
        self.pubkey = pubkey
        super().__init__(f"Message chain revisits {pubkey}")


class TransactionError(MessageFeedError):
    """Base class for compound ledger operations that aborted.

    The ledger applies transactions atomically, so none of these leave
    partial on-ledger state behind.

    Attributes:
        operation: The protocol action being attempted.
    """

    def __init__(self, message: str, operation: str | None = None) -> None:
        self.operation = operation
        super().__init__(message)


class InsufficientFunds(TransactionError):
    """The funding collaborator could not provide a funded payer.

    Attributes:
        lamports: The balance that was requested.
        cause: The underlying failure, if any.
    """

    def __init__(
        self,
        lamports: int,
        cause: Exception | None = None,
        operation: str | None = None,
    ) -> None:
        self.lamports = lamports
        self.cause = cause
        message = f"Unable to fund a payer with {lamports} lamports"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message, operation=operation)


class TransactionRejected(TransactionError):
    """The ledger or the feed program refused the transaction.

    Typical causes are a stale previous-message pointer or a ban attempt
    without authority.

    Attributes:
        signature: The transaction signature, when one was assigned.
        logs: Program logs returned by the node, if any.
    """

    def __init__(
        self,
        message: str,
        signature: str | None = None,
        logs: list[str] | None = None,
        operation: str | None = None,
    ) -> None:
        self.signature = signature
        self.logs = logs or []
        super().__init__(message, operation=operation)


class ConfirmationTimeout(TransactionError):
    """The transaction was submitted but no confirmation arrived in time.

    Attributes:
        signature: The submitted transaction signature.
        timeout: Seconds waited before giving up.
    """

    def __init__(
        self,
        signature: str,
        timeout: float,
        operation: str | None = None,
    ) -> None:
        self.signature = signature
        self.timeout = timeout
        super().__init__(
            f"Transaction {signature} was not confirmed within {timeout}s",
            operation=operation,
        )


class UnsupportedLoginMethod(MessageFeedError):
    """Configuration names a login method this client does not implement.

    Fatal at startup; never retried.

    Attributes:
        login_method: The offending login method name.
    """

    def __init__(self, login_method: Any) -> None:
        self.login_method = login_method
        super().__init__(f"Unsupported login method: {login_method}")
