import sys
import os

# Get the directory where this script is located (project root)
script_dir = os.path.dirname(os.path.abspath(__file__))

# Add the script directory to Python path so 'runner_checkin' can be found
if script_dir not in sys.path:
    sys.path.insert(0, script_dir)

# Change to the script directory so the .env lookup finds the project file
os.chdir(script_dir)

# Now import uvicorn and the app
import uvicorn

if __name__ == "__main__":
    # String form so reload can re-import runner_checkin.main:app
    uvicorn.run(
        "runner_checkin.main:app",
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8000")),
        reload=os.getenv("RELOAD", "1") == "1",
        reload_dirs=[script_dir],
        reload_includes=["*.py"]
    )
