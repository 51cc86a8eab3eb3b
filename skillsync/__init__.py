"""SkillSync — code-hosting contribution ingestion and skill inference."""
