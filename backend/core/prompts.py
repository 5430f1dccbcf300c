SYSTEM_PROMPT = "Tu es un expert en inventaire visuel pour les commerces."

INVENTORY_PROMPT = """
Tu es un expert en inventaire visuel pour les commerces.
Tu reçois une photo d'un rayon / tablette de magasin (vue globale).

Objectif :
- Identifier les produits principaux visibles.
- Pour chaque type de produit, retourner :
  - "label" : nom / description du produit (en français simple).
  - "brand" : marque si visible (sinon chaîne vide).
  - "estimated_quantity" : estimation du nombre d'unités visibles (entier, même si approximatif).
  - "position" : position sur la tablette (ex: "haut gauche", "milieu centre", "bas droite").
  - "confidence" : niveau de confiance entre 0 et 1 (ex: 0.82).

Réponds STRICTEMENT au format JSON suivant :
{
  "inventory": [
    {
      "label": "...",
      "brand": "...",
      "estimated_quantity": 0,
      "position": "...",
      "confidence": 0.0
    }
  ]
}
Aucun texte en dehors du JSON.
""".strip()

SCHEMA_NAME = "inventory_schema"

INVENTORY_JSON_SCHEMA = {
    "type": "object",
    "properties": {
        "inventory": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "label": {"type": "string"},
                    "brand": {"type": "string"},
                    "estimated_quantity": {"type": "integer"},
                    "position": {"type": "string"},
                    "confidence": {"type": "number"},
                },
                "required": ["label", "brand", "estimated_quantity", "position", "confidence"],
                "additionalProperties": False,
            },
        }
    },
    "required": ["inventory"],
    "additionalProperties": False,
}
