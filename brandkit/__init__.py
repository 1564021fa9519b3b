"""
Brand kit generation: one logo in, a launch asset pack out.

Modules:
- config: brand config model and input normalization
- prompts: style templates, presets and prompt building
- cache: content-addressable cache of generated images
- cost: per-run cost ledger
- scheduler: bounded-concurrency task execution
- generator: image service adapters (OpenAI, Replicate, local demo)
- render: resizing, compositing and format conversion
- stages: background, hero and export stages
- manifest: run manifest builder
- core: pipeline orchestration
- jobs: async job lifecycle
- server: HTTP API
"""
