# ibrac/adapters/cli.py
"""
CLI do sistema IBRAC (Typer).

Comandos principais:
- migrate                          -> aplica migrações e cria views
- params set/get/show              -> parâmetros globais (taxa financeira, perdas, impostos)
- cadastro ...                     -> produtos, donos, tipos de entrada/saída, parceiros
- entrada registrar/excluir        -> documento de entrada + volumes (sublotes)
- lotes                            -> lotes disponíveis para seleção
- lote transferir/historico/custo  -> troca de dono, linha do tempo e rastreio de custo
- beneficiamento previa/criar/finalizar/excluir/listar
- saida previa/registrar/excluir/listar
- acertos pendentes/conciliar      -> repasses aos donos de material
- lme atualizar/historico/semana   -> cotações LME
- importar / exportar              -> planilhas XLSX
- rel estoque/resultado/demonstrativo/repasses
- auditoria / logs
"""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ibrac.adapters.parsers import parse_perdas_opcao
from ibrac.config import DB_PATH, DEFAULTS, PARAM_KEYS
from ibrac.domain.cenarios import descrever_cenario, formatar_cenario
from ibrac.domain.errors import LmeApiError, RegistroNaoEncontrado, ValidacaoError
from ibrac.domain.models import PerdasPorProduto, TaxasKg
from ibrac.infra import logger as ibrac_logger
from ibrac.infra.migrations import apply_migrations
from ibrac.infra.repositories import AuditRepo, ParamsRepo, SubloteRepo
from ibrac.infra.views import create_views
from ibrac.usecases.acertos import conciliar_repasses, repasses_pendentes
from ibrac.usecases.cadastros import criar_cadastro, listar_cadastro
from ibrac.usecases.importar import LAYOUTS, run_exportar, run_importar
from ibrac.usecases.lme import atualizar_lme, configurar_semana, historico_lme
from ibrac.usecases.lotes import historico_lote, rastrear_custo, transferir_dono
from ibrac.usecases.parametros import carregar_params, definir_params
from ibrac.usecases.registrar_beneficiamento import (
    criar_beneficiamento,
    excluir_beneficiamento,
    finalizar_beneficiamento,
    listar_beneficiamentos,
    previa_beneficiamento,
)
from ibrac.usecases.registrar_entrada import excluir_entrada, run_registrar_entrada
from ibrac.usecases.registrar_saida import excluir_saida, listar_saidas, previa_saida, run_registrar_saida
from ibrac.usecases.relatorios import (
    relatorio_demonstrativo,
    relatorio_estoque,
    relatorio_repasses,
    relatorio_resultado_ibrac,
)


app = typer.Typer(help="IBRAC: beneficiamento, saídas e acertos financeiros")
console = Console()

ERROS_NEGOCIO = (ValidacaoError, RegistroNaoEncontrado, LmeApiError)

DbOption = typer.Option(DB_PATH, "--db", help="Caminho do SQLite")


@app.callback()
def _main(log: bool = typer.Option(False, "--log", help="Grava logs em ibrac/logs/")):
    ibrac_logger.ENABLE_LOGGING = log


# -----------------------
# util
# -----------------------

def _fmt(val: Any) -> str:
    """Formata números no padrão brasileiro (1.234,56)."""
    if isinstance(val, bool):
        return "sim" if val else "não"
    if isinstance(val, (int, float)):
        return f"{val:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    if val is None:
        return "-"
    return str(val)


def _print_json(obj) -> None:
    typer.echo(json.dumps(obj, ensure_ascii=False, indent=2, default=str))


def _display_table(data: List[Dict[str, Any]], title: str = "Resultado", columns: Optional[List[str]] = None) -> None:
    """Exibe uma lista de dicionários como tabela Rich."""
    if not data:
        console.print(Panel("Nenhum dado encontrado", title=title, border_style="yellow"))
        return
    columns = columns or list(data[0].keys())
    table = Table(title=title, box=box.ROUNDED)
    for col in columns:
        numerica = isinstance(data[0].get(col), (int, float)) and not isinstance(data[0].get(col), bool)
        table.add_column(col, justify="right" if numerica else "left")
    for row in data:
        table.add_row(*[_fmt(row.get(c)) for c in columns])
    console.print(table)


def _display_relatorio(res, title: str) -> None:
    """Exibe o retorno (colunas, linhas, mensagem) dos relatórios."""
    columns, rows, msg = res
    if msg:
        console.print(Panel(msg, title=title, border_style="yellow"))
        if not rows:
            return
    table = Table(title=title, box=box.ROUNDED)
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*[_fmt(v) for v in row])
    console.print(table)


def _display_kv(pares: List[tuple], title: str, border_style: str = "green") -> None:
    linhas = [f"[bold]{k}:[/] {_fmt(v)}" for k, v in pares]
    console.print(Panel("\n".join(linhas), title=title, border_style=border_style))


@contextmanager
def _tratando_erros(titulo: str = "Não foi possível concluir a operação"):
    try:
        yield
    except ERROS_NEGOCIO as e:
        console.print(Panel(str(e), title=titulo, border_style="red"))
        raise typer.Exit(code=1)
    except sqlite3.Error as e:
        console.print(Panel(str(e), title="Erro no banco de dados", border_style="red"))
        raise typer.Exit(code=1)


def _db(db_path: str) -> str:
    apply_migrations(db_path)
    return db_path


def _perdas(opcoes: Optional[List[str]]) -> PerdasPorProduto:
    perdas = PerdasPorProduto()
    for op in opcoes or []:
        try:
            codigo, padrao, cobrada = parse_perdas_opcao(op)
        except ValueError as e:
            raise typer.BadParameter(str(e))
        perdas.definir(codigo, padrao, cobrada)
    return perdas


def _display_custos(m: Dict[str, Any], title: str) -> None:
    _display_table([
        {
            "Produto": g.produto_codigo,
            "Peso entrada (kg)": g.peso_kg,
            "Perda padrão %": g.perda_padrao_pct,
            "Perda cobrada %": g.perda_cobrada_pct,
            "Peso saída est. (kg)": g.peso_saida_estimado_kg,
            "Lotes": len(g.sublote_ids),
        }
        for g in m["grupos"]
    ], title="Consolidação por produto")
    _display_table([
        {
            "Documento": d.codigo or "-",
            "Lotes": d.qtd_sublotes,
            "Valor documento": d.valor_documento,
            "Taxa %": d.taxa_financeira_pct,
            "Custo financeiro": d.taxa_financeira_valor,
        }
        for d in m["documentos"]
    ], title="Consolidação por documento")
    c = m["custos"]
    _display_kv([
        ("Peso entrada (kg)", c.peso_entrada_kg),
        ("Peso saída estimado (kg)", c.peso_saida_estimado_kg),
        ("Frete ida", c.custo_frete_ida),
        ("Frete volta", c.custo_frete_volta),
        ("MO terceiro", c.custo_mo_terceiro),
        ("MO IBRAC", c.custo_mo_ibrac),
        ("Custo operacional", c.custo_operacional),
        ("Custo financeiro", c.custo_financeiro),
        ("Custo total", c.custo_total),
        ("Lucro na perda (%)", c.lucro_perda_pct),
    ], title=title)


# -----------------------
# comandos de infra
# -----------------------

@app.command("migrate")
def cmd_migrate(db_path: str = DbOption):
    """Aplica migrações e recria as views auxiliares."""
    apply_migrations(db_path)
    create_views(db_path)
    typer.echo(f">> Migrações aplicadas e views criadas em: {db_path}")


params_app = typer.Typer(help="Gerenciar parâmetros globais.")
app.add_typer(params_app, name="params")


@params_app.command("set")
def cmd_params_set(
    taxa_financeira: Optional[float] = typer.Option(None, help="Custo financeiro sobre o documento (%)"),
    perda_real: Optional[float] = typer.Option(None, help="Perda técnica esperada (%)"),
    perda_cobrada: Optional[float] = typer.Option(None, help="Perda cobrada do dono (%)"),
    icms: Optional[float] = typer.Option(None, help="ICMS (%) da LME semanal"),
    pis_cofins: Optional[float] = typer.Option(None, help="PIS/COFINS (%) da LME semanal"),
    db_path: str = DbOption,
):
    """Define parâmetros globais (apenas os informados são alterados)."""
    informados = {
        "taxa_financeira_pct": taxa_financeira,
        "perda_real_pct": perda_real,
        "perda_cobrada_pct": perda_cobrada,
        "icms_pct": icms,
        "pis_cofins_pct": pis_cofins,
    }
    valores = {k: v for k, v in informados.items() if v is not None}
    if not valores:
        typer.echo("Nada a alterar. Informe pelo menos um parâmetro.")
        raise typer.Exit(code=1)
    with _tratando_erros("Parâmetro inválido"):
        definir_params(valores, db_path=_db(db_path))
    typer.echo(">> Parâmetros atualizados.")


@params_app.command("get")
def cmd_params_get(
    chave: str = typer.Argument(..., help=" | ".join(PARAM_KEYS)),
    db_path: str = DbOption,
):
    """Mostra um parâmetro específico."""
    val = ParamsRepo(_db(db_path)).get(chave)
    typer.echo("(None)" if val is None else val)


@params_app.command("show")
def cmd_params_show(db_path: str = DbOption):
    """Exibe os parâmetros efetivos (com fallback para defaults)."""
    p = carregar_params(_db(db_path))
    table = Table(title="Parâmetros do Sistema")
    table.add_column("Parâmetro")
    table.add_column("Valor Atual", justify="right")
    table.add_column("Valor Padrão", justify="right")
    for k in PARAM_KEYS:
        table.add_row(k, _fmt(getattr(p, k)), _fmt(getattr(DEFAULTS, k)))
    console.print(table)
    console.print(f"[dim]Banco de dados: {db_path}[/dim]")


# -----------------------
# cadastros
# -----------------------

cad_app = typer.Typer(help="Cadastros básicos")
app.add_typer(cad_app, name="cadastro")


def _cadastrar(tabela: str, dados: Dict[str, Any], db_path: str) -> None:
    with _tratando_erros("Cadastro recusado"):
        novo_id = criar_cadastro(tabela, dados, db_path=_db(db_path))
    typer.echo(f">> {tabela}: registro {novo_id} criado.")


@cad_app.command("produto")
def cad_produto(
    codigo: str = typer.Argument(...),
    nome: str = typer.Argument(...),
    perda_padrao: float = typer.Option(0.0, help="Perda padrão (%)"),
    db_path: str = DbOption,
):
    """Cadastra um tipo de produto."""
    _cadastrar("tipos_produto", {"codigo": codigo, "nome": nome, "perda_padrao_pct": perda_padrao}, db_path)


@cad_app.command("dono")
def cad_dono(
    nome: str = typer.Argument(...),
    ibrac: bool = typer.Option(False, "--ibrac", help="Material da própria IBRAC"),
    taxa_operacao: float = typer.Option(0.0, help="Comissão da IBRAC em operação de terceiro (%)"),
    documento: Optional[str] = typer.Option(None, help="CPF/CNPJ"),
    db_path: str = DbOption,
):
    """Cadastra um dono de material."""
    _cadastrar("donos_material", {
        "nome": nome, "is_ibrac": int(ibrac), "taxa_operacao_pct": taxa_operacao, "documento": documento,
    }, db_path)


@cad_app.command("tipo-entrada")
def cad_tipo_entrada(
    nome: str = typer.Argument(...),
    sem_custo: bool = typer.Option(False, "--sem-custo", help="Remessa para industrialização (não gera custo)"),
    db_path: str = DbOption,
):
    """Cadastra um tipo de entrada."""
    _cadastrar("tipos_entrada", {"nome": nome, "gera_custo": 0 if sem_custo else 1}, db_path)


@cad_app.command("tipo-saida")
def cad_tipo_saida(
    nome: str = typer.Argument(...),
    sem_custos: bool = typer.Option(False, "--sem-custos", help="Não deduz custos de beneficiamento"),
    db_path: str = DbOption,
):
    """Cadastra um tipo de saída."""
    _cadastrar("tipos_saida", {"nome": nome, "cobra_custos": 0 if sem_custos else 1}, db_path)


@cad_app.command("parceiro")
def cad_parceiro(
    razao_social: str = typer.Argument(...),
    cnpj: Optional[str] = typer.Option(None),
    cliente: bool = typer.Option(False, "--cliente"),
    fornecedor: bool = typer.Option(False, "--fornecedor"),
    transportadora: bool = typer.Option(False, "--transportadora"),
    db_path: str = DbOption,
):
    """Cadastra um parceiro (cliente, fornecedor, transportadora)."""
    _cadastrar("parceiros", {
        "razao_social": razao_social, "cnpj": cnpj, "is_cliente": int(cliente),
        "is_fornecedor": int(fornecedor), "is_transportadora": int(transportadora),
    }, db_path)


@cad_app.command("listar")
def cad_listar(
    tabela: str = typer.Argument(..., help="tipos_produto | donos_material | tipos_entrada | tipos_saida | parceiros"),
    db_path: str = DbOption,
):
    """Lista um cadastro."""
    with _tratando_erros():
        rows = listar_cadastro(tabela, db_path=_db(db_path))
    _display_table(rows, title=tabela)


# -----------------------
# entrada e lotes
# -----------------------

entrada_app = typer.Typer(help="Entradas de material")
app.add_typer(entrada_app, name="entrada")


@entrada_app.command("registrar")
def cmd_entrada_registrar(
    volume: List[float] = typer.Option(..., "--volume", "-v", help="Peso de cada volume (kg); repita a opção"),
    tipo_entrada: Optional[int] = typer.Option(None, help="ID do tipo de entrada"),
    produto: Optional[int] = typer.Option(None, help="ID do tipo de produto"),
    dono: Optional[int] = typer.Option(None, help="ID do dono do material"),
    parceiro: Optional[int] = typer.Option(None, help="ID do fornecedor"),
    valor_total: Optional[float] = typer.Option(None, help="Valor do documento (R$)"),
    valor_unitario: Optional[float] = typer.Option(None, help="Valor por kg (R$)"),
    nf: Optional[str] = typer.Option(None, help="Nota fiscal"),
    codigo: Optional[str] = typer.Option(None, help="Código do documento (gerado se omitido)"),
    data: Optional[str] = typer.Option(None, help="YYYY-MM-DD (hoje se omitido)"),
    db_path: str = DbOption,
):
    """Registra uma entrada com um sublote por volume."""
    with _tratando_erros("Entrada recusada"):
        res = run_registrar_entrada(
            volume, data_entrada=data, tipo_entrada_id=tipo_entrada, tipo_produto_id=produto,
            dono_id=dono, parceiro_id=parceiro, valor_total=valor_total, valor_unitario=valor_unitario,
            nota_fiscal=nf, codigo=codigo, db_path=_db(db_path),
        )
    _display_table(
        [{"ID": s["id"], "Lote": s["codigo"], "Peso (kg)": s["peso_kg"], "Custo (R$/kg)": s["custo_unitario_total"]}
         for s in res["sublotes"]],
        title=f"Entrada {res['codigo']} registrada",
    )


@entrada_app.command("excluir")
def cmd_entrada_excluir(
    entrada_id: int = typer.Argument(...),
    sim: bool = typer.Option(False, "--sim", help="Não pedir confirmação"),
    db_path: str = DbOption,
):
    """Exclui a entrada e seus lotes (só enquanto nenhum lote saiu do estoque)."""
    if not sim:
        typer.confirm(f"Excluir a entrada {entrada_id} e todos os seus lotes?", abort=True)
    with _tratando_erros("Exclusão bloqueada"):
        res = excluir_entrada(entrada_id, db_path=_db(db_path))
    typer.echo(f">> Entrada {res['codigo']} excluída: {res['lotes_removidos']} lote(s) removido(s).")


@app.command("lotes")
def cmd_lotes(db_path: str = DbOption):
    """Lista os lotes disponíveis (IDs usados em beneficiamento e saída)."""
    rows = SubloteRepo(_db(db_path)).disponiveis()
    _display_table([
        {
            "ID": r["id"], "Lote": r["codigo"], "Produto": r.get("produto_codigo") or "-",
            "Dono": r.get("dono_nome") or "-", "Peso (kg)": r["peso_kg"],
            "Custo (R$/kg)": r.get("custo_unitario_total") or 0.0, "Pai": r.get("lote_pai_id") or "-",
        }
        for r in rows
    ], title="Lotes disponíveis")



lote_app = typer.Typer(help="Operações e consultas de um lote")
app.add_typer(lote_app, name="lote")


@lote_app.command("transferir")
def lote_transferir(
    sublote_id: int = typer.Argument(...),
    dono: Optional[int] = typer.Option(None, help="ID do novo dono (omitido = material da casa)"),
    acrescimo: float = typer.Option(0.0, help="Acréscimo de custo (R$) diluído no peso do lote"),
    data: Optional[str] = typer.Option(None, help="YYYY-MM-DD (hoje se omitido)"),
    obs: Optional[str] = typer.Option(None, help="Observações"),
    db_path: str = DbOption,
):
    """Transfere um lote disponível para outro dono."""
    with _tratando_erros("Transferência recusada"):
        res = transferir_dono(sublote_id, dono, valor_acrescimo=acrescimo, data_transferencia=data,
                              observacoes=obs, db_path=_db(db_path))
    _display_kv([
        ("Lote", res["codigo"]),
        ("Custo anterior (R$/kg)", res["custo_unitario_anterior"]),
        ("Custo novo (R$/kg)", res["custo_unitario_novo"]),
    ], title=f"Transferência {res['transferencia_id']} registrada")


@lote_app.command("historico")
def lote_historico(sublote_id: int = typer.Argument(...), db_path: str = DbOption):
    """Linha do tempo do lote: entrada, transferências, beneficiamentos e saídas."""
    with _tratando_erros("Lote não encontrado"):
        h = historico_lote(sublote_id, db_path=_db(db_path))
    _display_table([
        {"Data": e["data"], "Evento": e["descricao"], "Peso (kg)": e["peso_kg"], "Valor (R$)": e["valor"]}
        for e in h["eventos"]
    ], title=f"Histórico do lote {h['lote']['codigo']}", columns=["Data", "Evento", "Peso (kg)", "Valor (R$)"])


@lote_app.command("custo")
def lote_custo(sublote_id: int = typer.Argument(...), db_path: str = DbOption):
    """Rastreia a composição do custo unitário do lote."""
    with _tratando_erros("Lote não encontrado"):
        r = rastrear_custo(sublote_id, db_path=_db(db_path))
    lote = r["lote"]
    _display_table(r["cadeia"], title="Cadeia de lotes", columns=["id", "codigo", "custo_unitario_total"])
    if r["origem"] == "beneficiamento":
        _display_table(r["consumidos"], title="Lotes consumidos", columns=["codigo", "peso_kg", "custo_unitario"])
        b = r["beneficiamento"]
        pares = [
            ("Beneficiamento", b["codigo"]),
            ("Custo médio dos lotes consumidos (R$/kg)", r["custo_medio_entrada"]),
            ("Fretes", b["custo_frete"]),
            ("Mão de obra", b["custo_mo"]),
            ("Custo financeiro", b["custo_financeiro"]),
            ("Custo total da operação", b["custo_total"]),
            ("Custo adicional (R$/kg)", b["custo_adicional_kg"]),
        ]
    elif r["origem"] == "entrada":
        e = r["entrada"]
        pares = [
            ("Documento", e["codigo"]),
            ("Tipo de entrada", e["tipo_entrada"]),
            ("Valor do documento", e["valor_total"]),
            ("Peso líquido (kg)", e["peso_liquido_kg"]),
            ("Custo do documento (R$/kg)", e["custo_kg"]),
        ]
    else:
        pares = [("Origem", "sem documento de entrada")]
    if r["transferencias"]:
        pares.append(("Acréscimos de transferência (R$/kg)", r["acrescimo_transferencias_kg"]))
    pares.append(("Custo unitário atual (R$/kg)", lote.get("custo_unitario_total") or 0.0))
    _display_kv(pares, title=f"Custo do lote {lote['codigo']}")


# -----------------------
# beneficiamento
# -----------------------

ben_app = typer.Typer(help="Beneficiamento de lotes")
app.add_typer(ben_app, name="beneficiamento")

_OPT_PERDA = typer.Option(None, "--perda", help="CODIGO=padrao:cobrada (%); repita por produto")


@ben_app.command("previa")
def ben_previa(
    sublotes: List[int] = typer.Argument(..., help="IDs dos lotes"),
    perda: Optional[List[str]] = _OPT_PERDA,
    frete_ida: float = typer.Option(0.0, help="R$/kg sobre o peso de entrada"),
    frete_volta: float = typer.Option(0.0, help="R$/kg sobre o peso de saída estimado"),
    mo_terceiro: float = typer.Option(0.0, help="R$/kg"),
    mo_ibrac: float = typer.Option(0.0, help="R$/kg"),
    taxa_financeira: Optional[float] = typer.Option(None, help="% sobre o valor do documento"),
    db_path: str = DbOption,
):
    """Mostra a consolidação e os custos sem gravar."""
    with _tratando_erros("Seleção inválida"):
        m = previa_beneficiamento(
            sublotes, _perdas(perda), TaxasKg(frete_ida, frete_volta, mo_terceiro, mo_ibrac),
            taxa_financeira, db_path=_db(db_path),
        )
    _display_custos(m, title="Prévia do beneficiamento")


@ben_app.command("criar")
def ben_criar(
    sublotes: List[int] = typer.Argument(..., help="IDs dos lotes"),
    perda: Optional[List[str]] = _OPT_PERDA,
    frete_ida: float = typer.Option(0.0, help="R$/kg sobre o peso de entrada"),
    frete_volta: float = typer.Option(0.0, help="R$/kg sobre o peso de saída estimado"),
    mo_terceiro: float = typer.Option(0.0, help="R$/kg"),
    mo_ibrac: float = typer.Option(0.0, help="R$/kg"),
    taxa_financeira: Optional[float] = typer.Option(None, help="% sobre o valor do documento"),
    tipo: str = typer.Option("interno", help="interno | terceiro"),
    obs: Optional[str] = typer.Option(None, help="Observações"),
    db_path: str = DbOption,
):
    """Cria um beneficiamento em andamento com os lotes informados."""
    with _tratando_erros("Beneficiamento recusado"):
        res = criar_beneficiamento(
            sublotes, _perdas(perda), TaxasKg(frete_ida, frete_volta, mo_terceiro, mo_ibrac),
            taxa_financeira, tipo_beneficiamento=tipo, observacoes=obs, db_path=_db(db_path),
        )
    _display_custos(res, title=f"Beneficiamento {res['codigo']} criado (ID {res['beneficiamento_id']})")


@ben_app.command("finalizar")
def ben_finalizar(
    beneficiamento_id: int = typer.Argument(...),
    peso_real: float = typer.Option(..., help="Peso de saída real (kg)"),
    produto_saida: Optional[int] = typer.Option(None, help="ID do tipo de produto gerado"),
    lme: Optional[float] = typer.Option(None, help="LME de referência (R$/kg)"),
    data: Optional[str] = typer.Option(None, help="YYYY-MM-DD (hoje se omitido)"),
    db_path: str = DbOption,
):
    """Finaliza o beneficiamento e gera os lotes derivados."""
    with _tratando_erros("Finalização recusada"):
        res = finalizar_beneficiamento(
            beneficiamento_id, peso_real, tipo_produto_saida_id=produto_saida,
            data_fim=data, lme_referencia_kg=lme, db_path=_db(db_path),
        )
    _display_kv([
        ("Custo total", res["custo_total"]),
        ("Custo adicional (R$/kg)", res["custo_adicional_kg"]),
        ("Perda real (%)", res["perda_real_pct"]),
        ("Lucro na perda (kg)", res["lucro_perda_kg"]),
        ("Lucro na perda (R$)", res["lucro_perda_valor"]),
    ], title=f"Beneficiamento {res['codigo']} finalizado")
    _display_table(
        [{"ID": g["id"], "Lote": g["codigo"], "Peso (kg)": g["peso_kg"], "Custo (R$/kg)": g["custo_unitario_total"]}
         for g in res["lotes_gerados"]],
        title="Lotes gerados",
    )


@ben_app.command("excluir")
def ben_excluir(
    beneficiamento_id: int = typer.Argument(...),
    estornar: bool = typer.Option(False, "--estornar", help="Permite desfazer um beneficiamento finalizado"),
    sim: bool = typer.Option(False, "--sim", help="Não pedir confirmação"),
    db_path: str = DbOption,
):
    """Exclui o beneficiamento e devolve os lotes ao estoque."""
    if not sim:
        typer.confirm(f"Excluir o beneficiamento {beneficiamento_id}?", abort=True)
    with _tratando_erros("Exclusão bloqueada"):
        res = excluir_beneficiamento(beneficiamento_id, estornar_finalizado=estornar, db_path=_db(db_path))
    typer.echo(
        f">> Beneficiamento {res['codigo']} excluído: {res['lotes_restaurados']} lote(s) restaurado(s), "
        f"{res['lotes_removidos']} lote(s) gerado(s) removido(s)."
    )


@ben_app.command("listar")
def ben_listar(
    status: Optional[str] = typer.Option(None, help="em_andamento | finalizado"),
    db_path: str = DbOption,
):
    """Lista os beneficiamentos."""
    rows = listar_beneficiamentos(status, db_path=_db(db_path))
    _display_table(rows, title="Beneficiamentos", columns=[
        "id", "codigo", "status", "data_inicio", "data_fim", "qtd_itens", "peso_entrada_kg", "peso_saida_kg",
    ])


# -----------------------
# saídas
# -----------------------

saida_app = typer.Typer(help="Saídas de material")
app.add_typer(saida_app, name="saida")


def _display_resultado(res, title: str) -> None:
    pares = [
        ("Cenário", formatar_cenario(res.cenario)),
        ("Operação", descrever_cenario(res.cenario)),
        ("Valor bruto", res.valor_bruto),
        ("Custo da perda", res.custo_perda),
        ("Custos adicionais", res.custos_adicionais),
        ("Custo de beneficiamento", res.custo_beneficiamento),
        ("Custos deduzidos", res.custos_totais),
    ]
    if res.comissao_ibrac or res.valor_repasse_dono:
        pares += [("Comissão IBRAC", res.comissao_ibrac), ("Repasse ao dono", res.valor_repasse_dono)]
    if res.receita_servico:
        pares.append(("Receita de serviço", res.receita_servico))
    if res.custo_final_ibrac:
        pares.append(("Custo final IBRAC", res.custo_final_ibrac))
    _display_kv(pares, title=title)


@saida_app.command("previa")
def saida_previa(
    sublotes: List[int] = typer.Argument(..., help="IDs dos lotes"),
    preco: float = typer.Option(..., help="Valor unitário de venda (R$/kg)"),
    tipo_saida: Optional[int] = typer.Option(None, help="ID do tipo de saída"),
    perda_cobrada: float = typer.Option(0.0, help="Perda cobrada (%)"),
    custos_adicionais: float = typer.Option(0.0, help="R$"),
    db_path: str = DbOption,
):
    """Calcula os valores e acertos de uma saída sem gravar."""
    with _tratando_erros("Seleção inválida"):
        res = previa_saida(sublotes, preco, tipo_saida, perda_cobrada, custos_adicionais, db_path=_db(db_path))
    _display_resultado(res["resultado"], title=f"Prévia da saída ({_fmt(res['peso_total_kg'])} kg)")


@saida_app.command("registrar")
def saida_registrar(
    sublotes: List[int] = typer.Argument(..., help="IDs dos lotes"),
    preco: float = typer.Option(..., help="Valor unitário de venda (R$/kg)"),
    tipo_saida: Optional[int] = typer.Option(None, help="ID do tipo de saída"),
    cliente: Optional[int] = typer.Option(None, help="ID do parceiro cliente"),
    perda_cobrada: float = typer.Option(0.0, help="Perda cobrada (%)"),
    custos_adicionais: float = typer.Option(0.0, help="R$"),
    nf: Optional[str] = typer.Option(None, help="Nota fiscal"),
    data: Optional[str] = typer.Option(None, help="YYYY-MM-DD (hoje se omitido)"),
    db_path: str = DbOption,
):
    """Registra a saída, baixa os lotes e cria os acertos financeiros."""
    with _tratando_erros("Saída recusada"):
        res = run_registrar_saida(
            sublotes, preco, tipo_saida_id=tipo_saida, cliente_id=cliente,
            perda_cobrada_pct=perda_cobrada, custos_adicionais=custos_adicionais,
            data_saida=data, nota_fiscal=nf, db_path=_db(db_path),
        )
    _display_resultado(res["resultado"], title=f"Saída {res['codigo']} registrada (ID {res['saida_id']})")


@saida_app.command("excluir")
def saida_excluir(
    saida_id: int = typer.Argument(...),
    sim: bool = typer.Option(False, "--sim", help="Não pedir confirmação"),
    db_path: str = DbOption,
):
    """Exclui a saída, devolvendo os lotes e removendo os acertos."""
    if not sim:
        typer.confirm(f"Excluir a saída {saida_id}?", abort=True)
    with _tratando_erros("Exclusão bloqueada"):
        res = excluir_saida(saida_id, db_path=_db(db_path))
    typer.echo(f">> Saída {res['codigo']} excluída: {res['lotes_restaurados']} lote(s) restaurado(s).")


@saida_app.command("listar")
def saida_listar(db_path: str = DbOption):
    """Lista as saídas."""
    rows = listar_saidas(db_path=_db(db_path))
    _display_table(rows, title="Saídas", columns=[
        "id", "codigo", "data_saida", "cenario_operacao", "peso_total_kg", "valor_total",
        "custos_cobrados", "comissao_ibrac", "valor_repasse_dono",
    ])


# -----------------------
# acertos
# -----------------------

acertos_app = typer.Typer(help="Repasses aos donos de material")
app.add_typer(acertos_app, name="acertos")


@acertos_app.command("pendentes")
def acertos_pendentes(db_path: str = DbOption):
    """Repasses pendentes agrupados por dono."""
    grupos = repasses_pendentes(db_path=_db(db_path))
    if not grupos:
        console.print(Panel("Nenhum repasse pendente", title="Repasses", border_style="green"))
        return
    for g in grupos:
        _display_table(
            [{"ID": a["id"], "Data": a["data_acerto"], "Valor": a["valor"], "Saída": a["referencia_id"]}
             for a in g["acertos"]],
            title=f"{g['dono_nome']}: total {_fmt(g['total'])}",
        )


@acertos_app.command("conciliar")
def acertos_conciliar(
    acerto: Optional[List[int]] = typer.Option(None, "--id", help="ID do acerto; repita a opção"),
    dono: Optional[int] = typer.Option(None, help="Concilia todos os pendentes do dono"),
    db_path: str = DbOption,
):
    """Marca repasses como pagos."""
    with _tratando_erros("Conciliação recusada"):
        res = conciliar_repasses(acerto, dono, db_path=_db(db_path))
    typer.echo(f">> {res['conciliados']} repasse(s) conciliado(s), total {_fmt(res['total'])}.")


# -----------------------
# LME
# -----------------------

lme_app = typer.Typer(help="Cotações LME")
app.add_typer(lme_app, name="lme")


@lme_app.command("atualizar")
def lme_atualizar(db_path: str = DbOption):
    """Busca as cotações do dia na API e grava no histórico."""
    with _tratando_erros("Erro ao buscar LME"):
        res = atualizar_lme(db_path=_db(db_path))
    r = res["registro"]
    _display_kv([
        ("Data", r["data"]),
        ("Cobre (US$/t)", r["cobre_usd_t"]),
        ("Alumínio (US$/t)", r["aluminio_usd_t"]),
        ("Dólar", r["dolar_brl"]),
        ("Cobre (R$/kg)", r["cobre_brl_kg"]),
    ], title=f"LME {'atualizada' if res['acao'] == 'update' else 'registrada'}")


@lme_app.command("historico")
def lme_historico(
    limite: int = typer.Option(30, help="Quantidade de dias"),
    db_path: str = DbOption,
):
    """Histórico de cotações."""
    rows = historico_lme(limite, db_path=_db(db_path))
    _display_table(rows, title="Histórico LME", columns=[
        "data", "cobre_usd_t", "aluminio_usd_t", "dolar_brl", "cobre_brl_kg", "fonte",
    ])


@lme_app.command("semana")
def lme_semana(
    ano: int = typer.Argument(...),
    semana: int = typer.Argument(..., help="Semana ISO (1-53)"),
    lme_usd: float = typer.Option(..., help="LME cobre (US$/t)"),
    dolar: float = typer.Option(..., help="Cotação do dólar (R$)"),
    icms: Optional[float] = typer.Option(None, help="% (padrão: parâmetro)"),
    pis_cofins: Optional[float] = typer.Option(None, help="% (padrão: parâmetro)"),
    taxa_financeira: Optional[float] = typer.Option(None, help="% (padrão: parâmetro)"),
    db_path: str = DbOption,
):
    """Configura a LME de referência da semana com impostos."""
    with _tratando_erros("Configuração recusada"):
        rec = configurar_semana(ano, semana, lme_usd, dolar, icms, pis_cofins, taxa_financeira, db_path=_db(db_path))
    _display_kv([
        ("Período", f"{rec['data_inicio']} a {rec['data_fim']}"),
        ("LME base (R$/kg)", rec["lme_base_brl_kg"]),
        ("Fator", f"{rec['fator_total']:.4f}"),
        ("LME final (R$/kg)", rec["lme_final_brl_kg"]),
    ], title=f"LME {ano}/S{semana}")


# -----------------------
# planilhas
# -----------------------

@app.command("importar")
def cmd_importar(
    path: str = typer.Argument(..., help="Caminho do XLSX"),
    layout: str = typer.Option(..., help=" | ".join(LAYOUTS)),
    auto_criar: bool = typer.Option(False, "--auto-criar", help="Cria cadastros referenciados ausentes"),
    db_path: str = DbOption,
):
    """Importa uma planilha, recusando códigos já existentes."""
    with _tratando_erros("Importação recusada"):
        res = run_importar(path, layout, auto_criar=auto_criar, db_path=_db(db_path))
    linhas = [f"Inseridos: {res['inseridos']}", f"Duplicados: {len(res['duplicados'])}"]
    if res["criados"]:
        linhas.append(f"Cadastros criados: {', '.join(res['criados'])}")
    console.print(Panel("\n".join(linhas), title=f"Importação {layout}"))
    if res["duplicados"]:
        console.print(f"[yellow]Códigos já existentes: {', '.join(res['duplicados'])}[/]")
    if res["erros"]:
        erro_table = Table(title="Erros Encontrados")
        erro_table.add_column("Erro")
        for erro in res["erros"]:
            erro_table.add_row(erro)
        console.print(erro_table)


@app.command("exportar")
def cmd_exportar(
    tabela: str = typer.Argument(...),
    path: str = typer.Argument(..., help="Arquivo XLSX de destino"),
    db_path: str = DbOption,
):
    """Exporta as linhas de uma tabela para XLSX."""
    with _tratando_erros("Exportação recusada"):
        res = run_exportar(path, tabela, db_path=_db(db_path))
    typer.echo(f">> {res['linhas']} linha(s) exportada(s) para {res['arquivo']}")


# -----------------------
# relatórios
# -----------------------

rel_app = typer.Typer(help="Relatórios")
app.add_typer(rel_app, name="rel")


@rel_app.command("estoque")
def rel_estoque(db_path: str = DbOption):
    """Estoque disponível por produto."""
    _display_relatorio(relatorio_estoque(db_path=db_path), title="Estoque por produto")


@rel_app.command("resultado")
def rel_resultado(db_path: str = DbOption):
    """Resultado da IBRAC (lucro na perda, serviços, comissões)."""
    _display_relatorio(relatorio_resultado_ibrac(db_path=db_path), title="Resultado IBRAC")


@rel_app.command("demonstrativo")
def rel_demonstrativo(
    dono: int = typer.Argument(..., help="ID do dono do material"),
    db_path: str = DbOption,
):
    """Demonstrativo de operações de um dono de material."""
    with _tratando_erros():
        res = relatorio_demonstrativo(dono, db_path=db_path)
    _display_relatorio(res, title="Demonstrativo do dono")


@rel_app.command("repasses")
def rel_repasses(db_path: str = DbOption):
    """Repasses pendentes por dono."""
    _display_relatorio(relatorio_repasses(db_path=db_path), title="Repasses pendentes")


# -----------------------
# auditoria e logs
# -----------------------

@app.command("auditoria")
def cmd_auditoria(
    tabela: Optional[str] = typer.Option(None, help="Filtra por tabela"),
    limite: int = typer.Option(50),
    json_: bool = typer.Option(False, "--json", help="Saída em JSON"),
    db_path: str = DbOption,
):
    """Últimos registros de auditoria."""
    rows = AuditRepo(_db(db_path)).listar(tabela, limite)
    if json_:
        _print_json(rows)
        return
    _display_table(
        [{"ID": r["id"], "Quando": r["created_at"], "Ação": r["action"], "Tabela": r["table_name"],
          "Registro": r["record_id"]} for r in rows],
        title="Auditoria",
    )


@app.command("logs")
def cmd_logs(
    tipo: str = typer.Argument("transactions", help="transactions | beneficiamentos | saidas | database | system"),
    linhas: int = typer.Option(50),
):
    """Últimas linhas de um arquivo de log (requer --log)."""
    if not ibrac_logger.ENABLE_LOGGING:
        typer.echo("Logging desabilitado. Use: ibrac --log logs")
        raise typer.Exit(code=1)
    typer.echo(ibrac_logger.get_log_summary(tipo, linhas))


# Entry point opcional:
def main():
    app()


if __name__ == "__main__":
    main()
