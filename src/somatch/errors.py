class MatchingError(Exception):
    pass


class InvalidArgument(MatchingError, ValueError):
    pass


class ArityMismatch(MatchingError):
    pass


class IllegalCapture(MatchingError):
    pass


class UnboundVariable(MatchingError):
    pass


class SearchLimitExceeded(MatchingError):
    def __str__(self):
        depth, max_depth = self.args
        return f"search depth {depth} exceeds the configured maximum of {max_depth}"
