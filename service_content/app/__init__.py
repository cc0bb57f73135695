"""
Content Service package for the headless content gateway.

The content service turns site routes into rendered pages backed by an
upstream content API:
- Cache-aside: one shared store consulted before every upstream fetch
- Shaping and rendering: raw payloads become template view models
- Control plane: per-route cache eviction and reseeding

Structure:
- app.main: ContentService, route registration and middleware wiring.
- app.resources: Route option variants and request resolution.
- app.caching: Cache keys, stores and the cache-aside layer.
- app.adapters: HTTP client for the upstream content API.
- app.pipeline: Request pipeline orchestrator and data shaper.
- app.rendering: Jinja2 template renderer and built-in error page.
- app.domain: Route cache invalidator and error responder.
"""
