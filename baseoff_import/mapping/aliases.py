from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

"""Static header alias table: historical spellings -> canonical field.

Keys are written as they appear in supplier files; they are normalized with
the same rule as incoming headers when the lookup index is built, so spaced
and underscored spellings of one alias collapse to one entry.
"""

__all__ = [
    "COLUMN_ALIASES",
    "CLIENT_FIELDS",
    "CONTRACT_FIELDS",
]

_ALIASES: dict[str, str] = {
    # cliente / benefício
    "NB": "nb",
    "CPF": "cpf",
    "NOME": "nome",
    "DTNASCIMENTO": "data_nascimento",
    "DT_NASCIMENTO": "data_nascimento",
    "DATANASCIMENTO": "data_nascimento",
    "DATA_NASCIMENTO": "data_nascimento",
    "ESP": "esp",
    "DIB": "dib",
    "MR": "mr",
    "BANCOPAGTO": "banco_pagto",
    "BANCO_PAGTO": "banco_pagto",
    "AGENCIAPAGTO": "agencia_pagto",
    "AGENCIA_PAGTO": "agencia_pagto",
    "ORGAOPAGADOR": "orgao_pagador",
    "ORGAO_PAGADOR": "orgao_pagador",
    "CONTACORRENTE": "conta_corrente",
    "CONTA_CORRENTE": "conta_corrente",
    "MEIOPAGTO": "meio_pagto",
    "MEIO_PAGTO": "meio_pagto",
    "STATUSBENEFICIO": "status_beneficio",
    "STATUS_BENEFICIO": "status_beneficio",
    "BLOQUEIO": "bloqueio",
    "PENSAOALIMENTICIA": "pensao_alimenticia",
    "PENSAO_ALIMENTICIA": "pensao_alimenticia",
    "REPRESENTANTE": "representante",
    "SEXO": "sexo",
    "DDB": "ddb",
    # RMC / RCC
    "BANCORMC": "banco_rmc",
    "BANCO_RMC": "banco_rmc",
    "VALORRMC": "valor_rmc",
    "VALOR_RMC": "valor_rmc",
    "VL_RMC": "valor_rmc",
    "BANCORCC": "banco_rcc",
    "BANCO_RCC": "banco_rcc",
    "VALORRCC": "valor_rcc",
    "VALOR_RCC": "valor_rcc",
    "VL_RCC": "valor_rcc",
    # contrato / empréstimo
    "BANCOEMPRESTIMO": "banco_emprestimo",
    "BANCO_EMPRESTIMO": "banco_emprestimo",
    "BANCO EMPRESTIMO": "banco_emprestimo",
    "BANCO_EMPRÉSTIMO": "banco_emprestimo",
    "BANCO EMPRÉSTIMO": "banco_emprestimo",
    "CD_BANCO_EMPRESTIMO": "banco_emprestimo",
    "CDBANCO": "banco_emprestimo",
    "CD_BANCO": "banco_emprestimo",
    "CODIGOBANCO": "banco_emprestimo",
    "CODIGO_BANCO": "banco_emprestimo",
    "CONTRATO": "contrato",
    "NR_CONTRATO": "contrato",
    "NRCONTRATO": "contrato",
    "NUMERO_CONTRATO": "contrato",
    "NUMEROCONTRATO": "contrato",
    "NUM_CONTRATO": "contrato",
    "NUMCONTRATO": "contrato",
    "ID_CONTRATO": "contrato",
    "IDCONTRATO": "contrato",
    "CD_CONTRATO": "contrato",
    "CDCONTRATO": "contrato",
    "CONTRATO_NUMERO": "contrato",
    "VLEMPRESTIMO": "vl_emprestimo",
    "VL_EMPRESTIMO": "vl_emprestimo",
    "VL EMPRESTIMO": "vl_emprestimo",
    "VALOREMPRESTIMO": "vl_emprestimo",
    "VALOR_EMPRESTIMO": "vl_emprestimo",
    "VALOR EMPRESTIMO": "vl_emprestimo",
    "VLEMPRÉSTIMO": "vl_emprestimo",
    "VL_EMPRÉSTIMO": "vl_emprestimo",
    "INICIODODESCONTO": "inicio_desconto",
    "INICIO_DESCONTO": "inicio_desconto",
    "INICIO DESCONTO": "inicio_desconto",
    "INICIODESCONTO": "inicio_desconto",
    "DT_INICIO_DESCONTO": "inicio_desconto",
    "DATA_INICIO_DESCONTO": "inicio_desconto",
    "PRAZO": "prazo",
    "QT_PRAZO": "prazo",
    "QTPRAZO": "prazo",
    "PRAZO_TOTAL": "prazo",
    "VLPARCELA": "vl_parcela",
    "VL_PARCELA": "vl_parcela",
    "VL PARCELA": "vl_parcela",
    "VALORPARCELA": "vl_parcela",
    "VALOR_PARCELA": "vl_parcela",
    "VALOR PARCELA": "vl_parcela",
    "TIPOEMPRESTIMO": "tipo_emprestimo",
    "TIPO_EMPRESTIMO": "tipo_emprestimo",
    "TIPO EMPRESTIMO": "tipo_emprestimo",
    "TIPOEMPRÉSTIMO": "tipo_emprestimo",
    "TIPO_EMPRÉSTIMO": "tipo_emprestimo",
    "CD_TIPO_EMPRESTIMO": "tipo_emprestimo",
    "CDTIPOEMPRESTIMO": "tipo_emprestimo",
    "TP_EMPRESTIMO": "tipo_emprestimo",
    "TPEMPRESTIMO": "tipo_emprestimo",
    "DATAAVERBACAO": "data_averbacao",
    "DATA_AVERBACAO": "data_averbacao",
    "DATA AVERBACAO": "data_averbacao",
    "DTAVERBACAO": "data_averbacao",
    "DT_AVERBACAO": "data_averbacao",
    "SITUACAOEMPRESTIMO": "situacao_emprestimo",
    "SITUACAO_EMPRESTIMO": "situacao_emprestimo",
    "SITUACAO EMPRESTIMO": "situacao_emprestimo",
    "SITUACAOEMPRÉSTIMO": "situacao_emprestimo",
    "ST_EMPRESTIMO": "situacao_emprestimo",
    "STATUS_EMPRESTIMO": "situacao_emprestimo",
    "COMPETENCIA": "competencia",
    "COMPETÊNCIA": "competencia",
    "COMPETENCIA_FINAL": "competencia_final",
    "COMPETENCIA FINAL": "competencia_final",
    "COMPETENCIAFINAL": "competencia_final",
    "COMPETÊNCIA_FINAL": "competencia_final",
    "TAXA": "taxa",
    "TX_JUROS": "taxa",
    "TXJUROS": "taxa",
    "TAXA_JUROS": "taxa",
    "SALDO": "saldo",
    "VL_SALDO": "saldo",
    "VLSALDO": "saldo",
    "SALDO_DEVEDOR": "saldo",
    # endereço
    "BAIRRO": "bairro",
    "MUNICIPIO": "municipio",
    "CIDADE": "municipio",
    "UF": "uf",
    "ESTADO": "uf",
    "CEP": "cep",
    "ENDERECO": "endereco",
    "ENDEREÇO": "endereco",
    "LOGR_TIPO_1": "logr_tipo_1",
    "LOGR_TITULO_1": "logr_titulo_1",
    "LOGR_NOME_1": "logr_nome_1",
    "LOGR_NUMERO_1": "logr_numero_1",
    "LOGR_COMPLEMENTO_1": "logr_complemento_1",
    "BAIRRO_1": "bairro_1",
    "CIDADE_1": "cidade_1",
    "UF_1": "uf_1",
    "CEP_1": "cep_1",
    # telefones
    "TELFIXO_1": "tel_fixo_1",
    "TELFIXO_2": "tel_fixo_2",
    "TELFIXO_3": "tel_fixo_3",
    "TELCEL_1": "tel_cel_1",
    "TELCEL_2": "tel_cel_2",
    "TELCEL_3": "tel_cel_3",
    "TEL_CEL_1": "tel_cel_1",
    "TEL_CEL_2": "tel_cel_2",
    "TEL_CEL_3": "tel_cel_3",
    "TEL_FIXO_1": "tel_fixo_1",
    "TEL_FIXO_2": "tel_fixo_2",
    "TEL_FIXO_3": "tel_fixo_3",
    "TELEFONE1": "tel_cel_1",
    "TELEFONE2": "tel_cel_2",
    "TELEFONE3": "tel_cel_3",
    "TELEFONE_1": "tel_cel_1",
    "TELEFONE_2": "tel_cel_2",
    "TELEFONE_3": "tel_cel_3",
    # e-mails
    "EMAIL_1": "email_1",
    "EMAIL_2": "email_2",
    "EMAIL_3": "email_3",
    "EMAIL1": "email_1",
    "EMAIL2": "email_2",
    "EMAIL3": "email_3",
    # filiação
    "NOME_MAE": "nome_mae",
    "NOMEMAE": "nome_mae",
    "NOME_PAI": "nome_pai",
    "NOMEPAI": "nome_pai",
    "NATURALIDADE": "naturalidade",
}

COLUMN_ALIASES: Mapping[str, str] = MappingProxyType(_ALIASES)

CONTRACT_FIELDS: frozenset[str] = frozenset({
    "contrato",
    "banco_emprestimo",
    "vl_emprestimo",
    "inicio_desconto",
    "prazo",
    "vl_parcela",
    "tipo_emprestimo",
    "data_averbacao",
    "situacao_emprestimo",
    "competencia",
    "competencia_final",
    "taxa",
    "saldo",
})

CLIENT_FIELDS: frozenset[str] = frozenset(_ALIASES.values()) - CONTRACT_FIELDS
