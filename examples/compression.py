"""Advanced-mode example: request compression on a large context.

Compression applies to input tokens, so the request carries a long
system message.  The gateway reports what it saved in
``response.compression``.

Usage:
    EDGEE_API_KEY=... uv run examples/compression.py
"""

import asyncio

from edgee import Edgee, InputObject

LARGE_CONTEXT = """
The History and Impact of Artificial Intelligence

Artificial intelligence began in earnest in the 1950s, when pioneers like
Alan Turing and John McCarthy laid the groundwork for machine intelligence.
Early work focused on symbolic reasoning and expert systems, which dominated
through the 1980s.  Neural networks resurfaced with backpropagation, and the
2010s brought deep learning, large datasets and the compute to use them.
Large language models have since accelerated progress in understanding and
generating natural language, while bias, interpretability and safety remain
open problems.
""" * 4


async def main():
    async with Edgee() as client:
        response = await client.send("gpt-4o", InputObject(
            messages=[
                {"role": "system", "content": LARGE_CONTEXT},
                {"role": "user", "content": "Summarize the key milestones in 3 bullet points."},
            ],
            enable_compression=True,
            compression_rate=0.5,
        ))

    print(response.text)
    if response.usage:
        print(f"Prompt tokens: {response.usage.prompt_tokens}")
    if response.compression:
        c = response.compression
        print(f"Saved {c.saved_tokens} of {c.input_tokens} input tokens (rate {c.rate:.2f})")
    else:
        print("No compression data returned.")


if __name__ == "__main__":
    asyncio.run(main())
