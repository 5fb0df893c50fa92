# Ejecuta desde la raíz del proyecto:
#   python -m scripts.export_ledger --agricultor A7 --out ./exports
#
# Requiere que tu .env tenga DATABASE_URL y SECRET_KEY.

from argparse import ArgumentParser
from pathlib import Path

from kuaagro.config.settings import settings
from kuaagro.schemas.registro import Registro
from kuaagro.services.document_store import DocumentStore
from kuaagro.services.export_service import export_filename, to_delimited_text
from kuaagro.services.identity_service import normalize_identity
from kuaagro.services.sync_service import document_key
from kuaagro.utils.datetime_utils import now_utc


def export_ledger(store: DocumentStore, agricultor: str, out_dir: Path) -> Path | None:
    doc = store.get(document_key(settings.data_collection, agricultor)) or {}
    records = [Registro.model_validate(r) for r in doc.get("records") or []]
    if not records:
        print(f"[--] {agricultor} no tiene registros; no se exporta nada")
        return None
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / export_filename(now_utc())
    path.write_bytes(to_delimited_text(records))
    print(f"[OK] {len(records)} registros de {agricultor} -> {path}")
    return path


if __name__ == "__main__":
    ap = ArgumentParser(description="Exporta el libro de un agricultor a CSV")
    ap.add_argument("--agricultor", required=True)
    ap.add_argument("--out", default=".")
    args = ap.parse_args()

    store = DocumentStore(settings.DATABASE_URL).initialize()
    try:
        export_ledger(store, normalize_identity(args.agricultor), Path(args.out))
    finally:
        store.close()
