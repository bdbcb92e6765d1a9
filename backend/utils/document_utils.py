"""
Módulo utilitário para validação, formatação e geração de CPF e CNPJ.
Único ponto do projeto com o cálculo dos dígitos verificadores (módulo 11):
schemas, serviços, scripts e frontend importam daqui.
"""
import random
import re
from enum import Enum
from typing import Dict, List, Optional, Union

CPF_LENGTH = 11
CNPJ_LENGTH = 14

CPF_WEIGHTS_1 = [10, 9, 8, 7, 6, 5, 4, 3, 2]
CPF_WEIGHTS_2 = [11, 10, 9, 8, 7, 6, 5, 4, 3, 2]
CNPJ_WEIGHTS_1 = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
CNPJ_WEIGHTS_2 = [6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]

_NON_DIGITS = re.compile(r"[^0-9]")


class DocumentType(str, Enum):
    CPF = "CPF"
    CNPJ = "CNPJ"
    INVALID = "INVALID"


class DocumentUtils:
    @staticmethod
    def clean(raw: Optional[str]) -> str:
        """
        Remove todos os caracteres não numéricos.
        Parâmetros:
            raw (str): CPF/CNPJ em qualquer formato
        Retorno:
            str: apenas dígitos (pode ser vazio)
        Exemplo: '123.456.789-09' -> '12345678909'
        """
        if raw is None:
            return ""
        return _NON_DIGITS.sub("", str(raw))

    @staticmethod
    def classify(digits: str) -> DocumentType:
        """
        Classifica o documento pelo tamanho da forma canônica.
        Parâmetros:
            digits (str): documento apenas com dígitos
        Retorno:
            DocumentType: CPF (11), CNPJ (14) ou INVALID
        """
        if len(digits) == CPF_LENGTH:
            return DocumentType.CPF
        if len(digits) == CNPJ_LENGTH:
            return DocumentType.CNPJ
        return DocumentType.INVALID

    @staticmethod
    def is_repeated_digit(digits: str) -> bool:
        return bool(digits) and digits == digits[0] * len(digits)

    @staticmethod
    def _check_digit(digits: Union[str, List[int]], weights: List[int]) -> int:
        total = sum(int(d) * w for d, w in zip(digits, weights))
        remainder = total % 11
        # resto 0 ou 1 gera dígito 0 (equivale a "11 - resto > 9 -> 0")
        return 0 if remainder < 2 else 11 - remainder

    @staticmethod
    def _is_well_formed(digits: str, length: int) -> bool:
        return (
            isinstance(digits, str)
            and len(digits) == length
            and _NON_DIGITS.search(digits) is None
            and not DocumentUtils.is_repeated_digit(digits)
        )

    @staticmethod
    def validate_cpf(digits: str) -> bool:
        """
        Valida CPF pelos dígitos verificadores.
        Parâmetros:
            digits (str): CPF com exatamente 11 dígitos
        Retorno:
            bool: True se válido, False caso contrário
        """
        if not DocumentUtils._is_well_formed(digits, CPF_LENGTH):
            return False
        if DocumentUtils._check_digit(digits[:9], CPF_WEIGHTS_1) != int(digits[9]):
            return False
        return DocumentUtils._check_digit(digits[:10], CPF_WEIGHTS_2) == int(digits[10])

    @staticmethod
    def validate_cnpj(digits: str) -> bool:
        """
        Valida CNPJ pelos dígitos verificadores.
        Parâmetros:
            digits (str): CNPJ com exatamente 14 dígitos
        Retorno:
            bool: True se válido, False caso contrário
        """
        if not DocumentUtils._is_well_formed(digits, CNPJ_LENGTH):
            return False
        if DocumentUtils._check_digit(digits[:12], CNPJ_WEIGHTS_1) != int(digits[12]):
            return False
        return DocumentUtils._check_digit(digits[:13], CNPJ_WEIGHTS_2) == int(digits[13])

    @staticmethod
    def validate(raw: Optional[str]) -> bool:
        """
        Valida CPF ou CNPJ em qualquer formato. Nunca lança exceção.
        Parâmetros:
            raw (str): documento com ou sem máscara
        Retorno:
            bool: True se o documento for um CPF ou CNPJ válido
        """
        digits = DocumentUtils.clean(raw)
        kind = DocumentUtils.classify(digits)
        if kind is DocumentType.CPF:
            return DocumentUtils.validate_cpf(digits)
        if kind is DocumentType.CNPJ:
            return DocumentUtils.validate_cnpj(digits)
        return False

    @staticmethod
    def format(raw: Optional[str]) -> str:
        """
        Aplica a máscara de exibição, inclusive para entrada parcial (digitação).
        Até 11 dígitos usa ddd.ddd.ddd-dd; acima disso dd.ddd.ddd/dddd-dd.
        Parâmetros:
            raw (str): documento com ou sem máscara
        Retorno:
            str: documento mascarado até o ponto já digitado
        """
        digits = DocumentUtils.clean(raw)[:CNPJ_LENGTH]
        if len(digits) <= CPF_LENGTH:
            separators = ((3, "."), (6, "."), (9, "-"))
        else:
            separators = ((2, "."), (5, "."), (8, "/"), (12, "-"))
        out = []
        start = 0
        for offset, sep in separators:
            if len(digits) <= offset:
                break
            out.append(digits[start:offset])
            out.append(sep)
            start = offset
        out.append(digits[start:])
        return "".join(out)

    @staticmethod
    def check_digits(payload: str, kind: DocumentType) -> str:
        """
        Calcula os dois dígitos verificadores de um payload.
        Parâmetros:
            payload (str): 9 dígitos (CPF) ou 12 dígitos (CNPJ)
            kind (DocumentType): tipo do documento
        Retorno:
            str: os dois dígitos verificadores
        """
        if kind is DocumentType.CPF:
            weights_1, weights_2, size = CPF_WEIGHTS_1, CPF_WEIGHTS_2, CPF_LENGTH - 2
        elif kind is DocumentType.CNPJ:
            weights_1, weights_2, size = CNPJ_WEIGHTS_1, CNPJ_WEIGHTS_2, CNPJ_LENGTH - 2
        else:
            raise ValueError(f"Tipo de documento não suportado: {kind}")
        if len(payload) != size or _NON_DIGITS.search(payload):
            raise ValueError(f"Payload de {kind.value} deve ter {size} dígitos")
        first = DocumentUtils._check_digit(payload, weights_1)
        second = DocumentUtils._check_digit(payload + str(first), weights_2)
        return f"{first}{second}"

    @staticmethod
    def generate(kind: Union[DocumentType, str], rng: Optional[random.Random] = None) -> str:
        """
        Gera um CPF/CNPJ sintético com dígitos verificadores corretos (dados de teste/seed).
        Payloads com um único dígito repetido são sorteados novamente.
        Parâmetros:
            kind (DocumentType | str): "CPF" ou "CNPJ"
            rng (random.Random, opcional): gerador para reprodutibilidade
        Retorno:
            str: documento apenas com dígitos
        """
        kind = DocumentType(kind.upper())
        if kind is DocumentType.INVALID:
            raise ValueError("Tipo de documento não suportado: INVALID")
        size = CPF_LENGTH - 2 if kind is DocumentType.CPF else CNPJ_LENGTH - 2
        rng = rng or random.SystemRandom()
        while True:
            payload = "".join(str(rng.randint(0, 9)) for _ in range(size))
            if not DocumentUtils.is_repeated_digit(payload):
                return payload + DocumentUtils.check_digits(payload, kind)

    @staticmethod
    def describe(raw: Optional[str]) -> Dict[str, object]:
        """
        Resumo do documento para CLI e frontend.
        Retorno:
            dict: digits, type, valid, formatted
        """
        digits = DocumentUtils.clean(raw)
        return {
            "digits": digits,
            "type": DocumentUtils.classify(digits).value,
            "valid": DocumentUtils.validate(digits),
            "formatted": DocumentUtils.format(digits),
        }
