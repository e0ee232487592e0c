"""Reply conventions of the supported protocols.

A dialect answers two questions about a status line: is it a positive
acknowledgement, and does another line of the same reply follow it.
"""


class ProtocolDialect:
    """Base class for a protocol's reply convention."""

    name = "generic"

    def is_positive(self, status_line: str) -> bool:
        raise NotImplementedError

    def is_continuation(self, status_line: str) -> bool:
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"


class NumericReplyDialect(ProtocolDialect):
    """Three-digit reply codes; 2xx and 3xx are positive.

    ``250-SIZE`` style lines continue the reply, ``250 OK`` ends it.
    """

    name = "smtp"

    def is_positive(self, status_line: str) -> bool:
        code = status_line[:3]
        return len(code) == 3 and code.isdigit() and code[0] in "23"

    def is_continuation(self, status_line: str) -> bool:
        return (
            len(status_line) > 3 and status_line[:3].isdigit() and status_line[3] == "-"
        )


class PrefixReplyDialect(ProtocolDialect):
    """Replies start with ``+OK`` or ``-ERR``."""

    name = "pop3"
    positive_prefix = "+OK"

    def is_positive(self, status_line: str) -> bool:
        return status_line[:3] == self.positive_prefix


SMTP_DIALECT = NumericReplyDialect()
POP3_DIALECT = PrefixReplyDialect()
