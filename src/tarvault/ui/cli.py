import argparse

from tarvault.utils.dataModels import Options
from tarvault.utils.errors import UsageError

USAGE = """\
usage: tarvault -e [-z] [-r] [-k KEY] [-p PASSWORD] PATH
       tarvault -d [-p PASSWORD] KEY
       tarvault -l [SEARCH]
       tarvault -h

Archive, encrypt and keep files or directories in a vault directory.

  -e            store PATH in the vault
  -d            retrieve KEY into the current directory
  -l            list stored keys (only SEARCH, if given)
  -z            gzip the archive before encrypting (with -e)
  -r            remove PATH after it was stored (with -e)
  -k KEY        store under KEY instead of the base name of PATH (with -e)
  -p PASSWORD   passphrase; prompted for when omitted
  -v            print diagnostics to stderr
  -h            show this help

environment:
  TARVAULT_DIR          vault directory (default ~/.tarvault)
  TARVAULT_CLEAR_CACHE  clear gpg-agent's passphrase cache afterwards (default 1)
  TARVAULT_BACKEND      gpg (default) or native
  TARVAULT_GPG          gpg executable (default gpg)
"""


class _Parser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    p = _Parser(prog="tarvault", add_help=False, usage=USAGE)
    p.add_argument("-e", dest="store", action="store_true")
    p.add_argument("-d", dest="retrieve", action="store_true")
    p.add_argument("-l", dest="enumerate", action="store_true")
    p.add_argument("-h", dest="help", action="store_true")
    p.add_argument("-z", dest="compress", action="store_true")
    p.add_argument("-r", dest="remove_original", action="store_true")
    p.add_argument("-k", dest="key", metavar="KEY")
    p.add_argument("-p", dest="passphrase", metavar="PASSWORD")
    p.add_argument("-v", dest="verbose", action="store_true")
    p.add_argument("item", nargs="?")
    return p


def parse_options(argv: list[str]) -> Options:
    args = build_parser().parse_args(argv)
    return Options(**vars(args))
