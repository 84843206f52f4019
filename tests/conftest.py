"""
Test configuration and fixtures.
"""

import json

import pytest

from docindex.embeddings import EmbeddingsTracker
from docindex.models import ChunkMetadata, DocumentChunk, ParsedContent, make_chunk_id
from docindex.store import MemoryStore


@pytest.fixture
def spec_dict():
    """A small structured API spec."""
    return {
        "_meta": {"version": "2.0"},
        "Threads": [
            {
                "title": "Threads",
                "namespace": "Threads",
                "content": [
                    {
                        "type": "class",
                        "name": "ThreadApi",
                        "description": "Manages encrypted threads between users.",
                        "methods": [
                            {
                                "name": "createThread",
                                "description": "Creates a new thread in a context.",
                                "snippet": "createThread(contextId, users, managers)",
                                "methodType": "method",
                                "params": [
                                    {
                                        "name": "contextId",
                                        "description": "ID of the context",
                                        "type": {"name": "string"},
                                    },
                                    {
                                        "name": "users",
                                        "description": "Thread members",
                                        "type": {"name": "UserWithPubKey[]"},
                                    },
                                ],
                                "returns": [
                                    {"type": {"name": "string"}, "description": "Created thread ID"}
                                ],
                            },
                            {
                                "name": "listThreads",
                                "description": "Lists threads in a context.",
                                "params": [
                                    {
                                        "name": "contextId",
                                        "description": "ID of the context",
                                        "type": {"name": "string"},
                                    },
                                ],
                                "returns": [],
                            },
                        ],
                    },
                    {
                        "type": "type",
                        "name": "ThreadInfo",
                        "description": "Information about a thread.",
                        "fields": [
                            {"name": "threadId", "type": {"name": "string"}, "description": "ID"},
                        ],
                    },
                ],
            }
        ],
    }


@pytest.fixture
def spec_json(spec_dict):
    return json.dumps(spec_dict)


@pytest.fixture
def workflow_markdown():
    """A workflow document with three steps."""
    return """---
title: Send Your First Message
description: Connect, create a thread and send a message
category: Threads
difficulty: beginner
workflow: true
tags:
  - messaging
---

# Send Your First Message

Some introduction text.

## Step 1: Connect to the Bridge

Prerequisites: bridge URL, private key

```typescript
const connection = await Endpoint.connect(privKey, solutionId, bridgeUrl);
```

## Step 2: Create a Thread

Create a thread for your users.

```typescript
const threadId = await threadApi.createThread(contextId, users, managers);
```

## Step 3: Send a Message

Send the first message.

## Troubleshooting

Check your credentials.
"""


@pytest.fixture
def guide_markdown():
    """A plain guide with two sections."""
    return """---
category: Stores
difficulty: intermediate
---

# Working with Stores

Stores hold files. Use case: sharing documents with a team.

```typescript
const storeId = await storeApi.createStore(contextId, users, managers);
```

## Uploading Files

Files are uploaded in chunks to keep memory usage low.
"""


@pytest.fixture
def crud_class():
    """A class documented with seven method headings."""
    methods = [
        ("create", "contextId, users", "Creates a thread."),
        ("get", "threadId", "Gets a thread by ID."),
        ("update", "threadId, users", "Updates thread members."),
        ("delete", "threadId", "Deletes a thread."),
        ("list", "contextId", "Lists threads in a context."),
        ("connect", "", "Connects to thread events."),
        ("disconnect", "", "Disconnects from thread events."),
    ]
    parts = [
        "# Thread",
        "",
        "## Overview",
        "",
        "Threads are encrypted conversations between users.",
        "",
        "## Methods",
        "",
    ]
    for name, args, description in methods:
        parts.extend([f"### {name}({args})", "", description, ""])

    return ParsedContent(
        type="class",
        name="Thread",
        description="Encrypted conversation between users.",
        content="\n".join(parts).strip(),
        metadata={
            "type": "class",
            "namespace": "Threads",
            "class_name": "Thread",
            "importance": "high",
            "tags": ["threads"],
            "source_file": "spec/out.js.json",
        },
    )


@pytest.fixture
def make_chunk():
    """Factory for simple chunks with a stable key."""

    def _make(key: str, content: str = "", **metadata):
        body = content or f"# {key}\n\nContent for {key} with enough words to embed."
        return DocumentChunk(
            id=make_chunk_id(key),
            key=key,
            content=body,
            metadata=ChunkMetadata(**metadata),
        )

    return _make


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def tracker(memory_store):
    return EmbeddingsTracker(memory_store)
