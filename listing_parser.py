import html

from lxml import etree

from symbol_database import NOT_AVAILABLE, Symbol

MIN_CELLS = 6


def _cell_text(cell) -> str:
    """
    Returns the visible text of a cell, whitespace-trimmed.
    """
    return "".join(cell.itertext()).strip()


def _cell_markup(cell) -> str:
    """
    Returns the text of a cell with its entities still encoded, tags dropped.
    Decoding is left to the write step so it happens exactly once.
    """
    return html.escape(_cell_text(cell), quote=False)


def _first_link(cell):
    links = cell.xpath(".//a")
    return links[0] if links else None


def _parse_row(cells):
    """
    Maps one table row's cells onto a Symbol.

    Cell 0 holds a link whose data-symbol attribute is the ticker, cell 1 the
    entity-encoded name, cell 3 a link to the category, cell 4 the asset
    class and cell 5 the exchange. Returns None for rows that are too short.
    """
    if len(cells) < MIN_CELLS:
        return None

    symbol_link = _first_link(cells[0])
    symbol = (symbol_link.get("data-symbol") or "") if symbol_link is not None else ""

    category_link = _first_link(cells[3])
    if category_link is not None:
        category = _cell_text(category_link)
    else:
        category = NOT_AVAILABLE

    return Symbol(
        symbol=symbol.strip(),
        name=_cell_markup(cells[1]),
        category=category,
        asset_class=_cell_text(cells[4]),
        exchange=_cell_text(cells[5]),
    )


def parse_listing(document: str, sector: str = "") -> list[Symbol]:
    """
    Extracts symbol records from one page of lookup markup.

    Every table row with at least six cells yields a record, including rows
    whose ticker link is missing (their symbol is ""). Short or malformed rows
    are skipped without failing the page.

    Args:
        document: Raw HTML of the lookup page.
        sector: The sector the page was requested for; used in warnings only.

    Returns:
        Records in document order.
    """
    if not document or not document.strip():
        return []

    # Feed bytes with a fixed encoding so an in-document charset declaration is ignored.
    parser = etree.HTMLParser(encoding="utf-8")
    try:
        tree = etree.HTML(document.encode("utf-8"), parser)
    except (etree.ParserError, etree.XMLSyntaxError, ValueError) as exc:
        print(f"[parse_listing] Warning: Unparsable {sector or 'listing'} page: {exc}")
        return []
    if tree is None:
        return []

    records = []
    # libxml2 does not synthesize <tbody>, so match rows at any depth.
    for row in tree.xpath("//table//tr"):
        try:
            record = _parse_row(row.xpath("./td"))
        except (AttributeError, TypeError, ValueError) as exc:
            print(f"[parse_listing] Skipping malformed {sector or 'listing'} row: {exc}")
            continue
        if record is not None:
            records.append(record)

    return records
