# src/composer/errors.py


class ComposerError(Exception):
    """Base class for errors raised by the composition layer."""


class MutationError(ComposerError, ValueError):
    """A document patch could not be applied. The document is left unchanged."""


class SymbolError(ComposerError, KeyError):
    """Raised on catalog misuse, e.g. referencing an unknown symbol id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""
