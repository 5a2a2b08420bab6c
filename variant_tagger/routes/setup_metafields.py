# variant_tagger/routes/setup_metafields.py
from flask import Blueprint, current_app

from .. import config
from ..clients.shopify import graphql, ShopifyError
from ..utils.logger import info, warn

bp = Blueprint("setup_metafields", __name__)

MUTATION = """
mutation metafieldDefinitionCreate($definition: MetafieldDefinitionInput!) {
  metafieldDefinitionCreate(definition: $definition) {
    createdDefinition {
      id
      name
      namespace
      key
      type { name category }
      ownerType
    }
    userErrors { field message }
  }
}
"""

def label_definition() -> dict:
    return {
        "name": "Variant Tag",
        "namespace": config.LABEL_NAMESPACE,
        "key": config.LABEL_KEY,
        "type": "single_line_text_field",
        "description": "Merchandising status: New, Offer, Hot or None (maintained automatically)",
        "ownerType": "PRODUCTVARIANT",
    }

def create_label_definition(store: dict) -> str:
    ns, key = config.LABEL_NAMESPACE, config.LABEL_KEY
    try:
        resp = graphql(store["domain"], store["token"], MUTATION, {"definition": label_definition()})
    except ShopifyError as e:
        warn(f"{ns}.{key}: {e}", "setup")
        return f"{store['name']} {ns}.{key}: EXC {e}"

    # Top-level GraphQL errors?
    top_errors = resp.get("errors")
    if top_errors:
        return f"{store['name']} {ns}.{key}: ERR {top_errors}"

    data = resp.get("data") or {}
    block = data.get("metafieldDefinitionCreate") or {}
    created = block.get("createdDefinition")
    errs = block.get("userErrors") or []

    if created:
        info(f"created definition {ns}.{key} ({created.get('id')})", "setup")
        return f"{store['name']} {ns}.{key}: OK {created.get('id')}"

    if errs:
        msg = "; ".join([e.get("message", "") for e in errs])
        # Treat duplicates as success
        if "already been taken" in msg.lower() or "already exists" in msg.lower():
            return f"{store['name']} {ns}.{key}: EXISTS"
        return f"{store['name']} {ns}.{key}: ERR {msg}"
    return f"{store['name']} {ns}.{key}: UNKNOWN {resp}"

@bp.get("/create")
def create_defs():
    return create_label_definition(current_app.config["STORE"]), 200
