"""Tool-calling example: a weather assistant.

Demonstrates:
- Declaring a tool with a pydantic argument model
- Declaring a tool with @tool
- Buffered and streamed calls through the automatic tool loop

Usage:
    EDGEE_API_KEY=... uv run examples/weather_agent.py --model gpt-4o
    EDGEE_API_KEY=... uv run examples/weather_agent.py --model gpt-4o --stream --trace
"""

import argparse
import asyncio
import random

from pydantic import BaseModel, Field

from edgee import Edgee, Tool, tool


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from edgee.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


class WeatherArgs(BaseModel):
    location: str = Field(description="City name")


def get_weather(args: WeatherArgs):
    return {
        "location": args.location,
        "temperature": random.randint(5, 30),
        "conditions": random.choice(["sunny", "cloudy", "rainy"]),
    }


weather = Tool(
    name="get_weather",
    description="Get the current weather for a location",
    schema=WeatherArgs,
    handler=get_weather,
)


@tool
def convert_temperature(celsius: float):
    """Convert a temperature to Fahrenheit.

    Args:
        celsius: Temperature in degrees Celsius.
    """
    return celsius * 9 / 5 + 32


async def main(model: str, stream: bool):
    prompt = "What's the weather in Paris, in Fahrenheit?"
    async with Edgee() as client:
        if not stream:
            response = await client.send(model, prompt, tools=[weather, convert_temperature])
            print(response.text)
            print(f"Usage: {response.usage}")
            return

        async for event in client.stream(model, prompt, tools=[weather, convert_temperature]):
            if event.type == "chunk":
                print(event.chunk.text or "", end="", flush=True)
            elif event.type == "tool_start":
                print(f"\n> {event.tool_call.name}({event.tool_call.arguments})")
            elif event.type == "tool_result":
                print(f"< {event.content}")
        print()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--model", default="gpt-4o")
    parser.add_argument("--stream", action="store_true")
    parser.add_argument("--trace", action="store_true")
    args = parser.parse_args()
    if args.trace:
        setup_tracing("weather-agent")
    asyncio.run(main(args.model, args.stream))
