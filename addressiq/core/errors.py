class AddressNotFound(Exception):
    """The resolver could not turn a postcode and house number into an address."""

    def __init__(self, postcode: str, house_number: str, reason: str | None = None) -> None:
        self.postcode = postcode
        self.house_number = house_number
        self.reason = reason
        message = f"address not found for {postcode} {house_number}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class Cancelled(Exception):
    """The request was cancelled before the aggregate was sealed."""


class UpstreamError(Exception):
    def __init__(self, source: str, message: str, status: int | None = None) -> None:
        self.source = source
        self.status = status
        super().__init__(message)


class ConfigMissing(Exception):
    pass
