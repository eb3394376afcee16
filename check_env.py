#!/usr/bin/env python3
"""Helper script to check and create .env file for routing provider configuration."""

from pathlib import Path
import os

def main():
    project_root = Path(__file__).parent
    env_file = project_root / ".env"

    print("=" * 60)
    print("Route Planner Environment Variables Checker")
    print("=" * 60)
    print()

    # Check if .env exists
    if env_file.exists():
        print(f"✅ Found .env file at: {env_file}")
        print()
        print("Current contents:")
        print("-" * 60)
        with open(env_file, "r", encoding="utf-8") as f:
            content = f.read()
            # Mask the key for security
            for line in content.split("\n"):
                if "ROUTEPLAN_GOOGLE_MAPS_API_KEY" in line and "=" in line:
                    name, key_value = line.split("=", 1)
                    key_value = key_value.strip()
                    if len(key_value) > 12:
                        print(f"{name}={key_value[:8]}...{key_value[-4:]}")
                    else:
                        print(line)
                else:
                    print(line)
        print("-" * 60)
        print()
    else:
        print(f"❌ .env file NOT found at: {env_file}")
        print()
        print("Creating template .env file...")
        print()

        template = """# Google Maps Platform (Distance Matrix, Directions, Places)
# Get a key from: https://console.cloud.google.com → APIs & Services → Credentials
ROUTEPLAN_GOOGLE_MAPS_API_KEY=your-api-key-here

# Providers: google or osrm
ROUTEPLAN_MATRIX_PROVIDER=google
ROUTEPLAN_PATH_PROVIDER=google

# API Configuration
ROUTEPLAN_API_PREFIX=/api
ROUTEPLAN_LOG_LEVEL=info
# ROUTEPLAN_FRONTEND_ALLOWED_ORIGINS - Leave commented to use defaults
# If you need to override, use JSON array format: ["http://localhost:8081","http://127.0.0.1:8081"]
# Or comma-separated: http://localhost:8081,http://127.0.0.1:8081

# OSRM Routing (Optional - only used when a provider above is osrm)
# ROUTEPLAN_OSRM_BASE_URL=http://localhost:5000
"""

        with open(env_file, "w", encoding="utf-8") as f:
            f.write(template)

        print(f"✅ Created .env file at: {env_file}")
        print()
        print("⚠️  Please edit .env and add your Google Maps API key!")
        print()
        return

    # Check environment variables
    print("Checking environment variables...")
    print()

    api_key = os.getenv("ROUTEPLAN_GOOGLE_MAPS_API_KEY")
    if api_key:
        print(f"✅ ROUTEPLAN_GOOGLE_MAPS_API_KEY (from environment): {api_key[:8]}...")
    else:
        print("❌ ROUTEPLAN_GOOGLE_MAPS_API_KEY not found in environment")

    print()

    # Test loading from config
    print("Testing config loading...")
    print()

    try:
        import sys
        sys.path.insert(0, str(project_root / "src"))
        from route_planner.config import settings

        print(f"Matrix provider: {settings.matrix_provider}")
        print(f"Path provider: {settings.path_provider}")
        needs_google = "google" in (settings.matrix_provider, settings.path_provider)
        needs_osrm = "osrm" in (settings.matrix_provider, settings.path_provider)
        missing = []
        if needs_google and not settings.google_maps_api_key:
            missing.append("ROUTEPLAN_GOOGLE_MAPS_API_KEY")
        if needs_osrm and not settings.osrm_base_url:
            missing.append("ROUTEPLAN_OSRM_BASE_URL")

        print()
        if not missing:
            print("=" * 60)
            print("✅ SUCCESS: Routing providers are configured!")
            print("=" * 60)
        else:
            print("=" * 60)
            print(f"❌ ERROR: Missing configuration: {', '.join(missing)}")
            print("=" * 60)
            print()
            print("Troubleshooting:")
            print("1. Make sure .env file exists in project root")
            print("2. Make sure variables start with ROUTEPLAN_ prefix")
            print("3. Make sure there are no spaces around = sign")
            print("4. Restart backend after editing .env")
            print()
    except Exception as e:
        print(f"❌ Error loading config: {e}")
        print()
        print("Make sure you're running this from the project root directory")

if __name__ == "__main__":
    main()
