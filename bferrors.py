# exit statuses, as in sysexits.h
EX_USAGE = 64
EX_DATAERR = 65
EX_NOINPUT = 66
EX_SOFTWARE = 70
EX_CANTCREAT = 73


class BFError(Exception):
    exit_status = EX_SOFTWARE

    def __init__(self, message: str):
        super().__init__(message)


class UnbalancedLoopError(BFError):
    """
    More loop starts than loop ends once the whole source has been read.
    """
    exit_status = EX_DATAERR

    def __init__(self, unclosed: int):
        super().__init__("unbalanced loop (%d unclosed '[')" % unclosed)
        self.unclosed = unclosed


class LoopEndBeforeStartError(BFError):
    """
    A loop end appeared before any matching loop start.
    """
    exit_status = EX_DATAERR

    def __init__(self, offset: int):
        super().__init__("loop end before matching loop start at offset %d" % offset)
        self.offset = offset


class NoInputError(BFError):
    exit_status = EX_NOINPUT


class TapeError(BFError):
    pass


class CompilerNotFoundError(BFError):
    def __init__(self, name: str):
        super().__init__("could not find compiler '%s'" % name)
        self.name = name


class CompilerError(BFError):
    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class TempFileError(BFError):
    exit_status = EX_CANTCREAT


class OutputError(BFError):
    exit_status = EX_CANTCREAT
