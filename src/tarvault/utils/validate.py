from tarvault.utils.dataModels import Mode, Options
from tarvault.utils.errors import UsageError

_MODE_FLAGS = {Mode.STORE: "-e", Mode.RETRIEVE: "-d", Mode.ENUMERATE: "-l"}


def resolve_mode(opts: Options) -> Mode:
    if opts.help:
        return Mode.HELP
    if opts.store:
        return Mode.STORE
    if opts.retrieve:
        return Mode.RETRIEVE
    if opts.enumerate:
        return Mode.ENUMERATE
    raise UsageError("one of -e, -d, -l or -h is required")


def validate(mode: Mode, opts: Options) -> None:
    """Reject illegal flag combinations for ``mode``.

    Pure: raises UsageError on the first violation and touches nothing else,
    so callers run it before any archive, encryption or filesystem call.
    """
    if mode is Mode.HELP:
        return

    if mode is Mode.STORE:
        conflicts = {"-d": opts.retrieve, "-l": opts.enumerate}
    elif mode is Mode.RETRIEVE:
        conflicts = {
            "-z": opts.compress,
            "-r": opts.remove_original,
            "-l": opts.enumerate,
            "-k": opts.key is not None,
        }
    else:
        conflicts = {
            "-e": opts.store,
            "-d": opts.retrieve,
            "-z": opts.compress,
            "-r": opts.remove_original,
            "-k": opts.key is not None,
        }

    bad = [flag for flag, present in conflicts.items() if present]
    if bad:
        raise UsageError(f"{', '.join(bad)} cannot be used with {_MODE_FLAGS[mode]}")

    if mode in (Mode.STORE, Mode.RETRIEVE) and not opts.item:
        what = "path to store" if mode is Mode.STORE else "key to retrieve"
        raise UsageError(f"missing {what}")

    if mode is Mode.STORE and opts.key is not None and not opts.key:
        raise UsageError("-k needs a non-empty key")

