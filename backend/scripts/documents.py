"""
Utilitário de linha de comando para CPF/CNPJ.

Exemplos:
    python -m backend.scripts.documents validate 123.456.789-09 12345678000195
    python -m backend.scripts.documents format 12345678909
    python -m backend.scripts.documents generate cnpj -n 3 --formatted
"""
import argparse
import sys
from typing import List, Optional

from backend.utils.document_utils import DocumentType, DocumentUtils


def cmd_validate(args: argparse.Namespace) -> int:
    all_valid = True
    for value in args.values:
        info = DocumentUtils.describe(value)
        all_valid = all_valid and info["valid"]
        status = "válido" if info["valid"] else "inválido"
        print(f"{value}\t{info['digits']}\t{info['type']}\t{status}\t{info['formatted']}")
    return 0 if all_valid else 1


def cmd_format(args: argparse.Namespace) -> int:
    for value in args.values:
        print(DocumentUtils.format(value))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    kind = DocumentType(args.kind.upper())
    for _ in range(args.count):
        digits = DocumentUtils.generate(kind)
        print(DocumentUtils.format(digits) if args.formatted else digits)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="documents", description="Valida, formata e gera CPF/CNPJ")
    sub = parser.add_subparsers(dest="command", required=True)

    p_validate = sub.add_parser("validate", help="valida um ou mais documentos")
    p_validate.add_argument("values", nargs="+")
    p_validate.set_defaults(func=cmd_validate)

    p_format = sub.add_parser("format", help="aplica a máscara de exibição")
    p_format.add_argument("values", nargs="+")
    p_format.set_defaults(func=cmd_format)

    p_generate = sub.add_parser("generate", help="gera documentos sintéticos válidos")
    p_generate.add_argument("kind", choices=["cpf", "cnpj"])
    p_generate.add_argument("-n", "--count", type=int, default=1)
    p_generate.add_argument("--formatted", action="store_true")
    p_generate.set_defaults(func=cmd_generate)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
