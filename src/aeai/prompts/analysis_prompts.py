"""
Instructions sent with captured frames to the vision model.

Each constant maps to one analysis type and asks for a specific JSON
structure. Uppercase string constants are also exposed as Jinja2 globals.
"""

FULL_ANALYSIS_PROMPT = """Analyze this video frame for VFX integration. Return a JSON object with:
{
    "coinPosition": { "x": 0-100, "y": 0-100, "size": "small|medium|large" },
    "lighting": {
        "direction": "left|right|top|bottom|front|back",
        "intensity": "low|medium|high",
        "color": { "r": 0-255, "g": 0-255, "b": 0-255 },
        "temperature": "warm|neutral|cool"
    },
    "colorGrade": {
        "exposure": -2 to 2,
        "contrast": "low|medium|high",
        "saturation": "desaturated|normal|saturated",
        "dominantColors": ["#hex1", "#hex2"]
    },
    "camera": {
        "focalLength": "wide|normal|telephoto",
        "depthOfField": "shallow|medium|deep",
        "angle": "low|eye-level|high"
    },
    "recommendations": ["suggestion1", "suggestion2"]
}"""

COIN_ANALYSIS_PROMPT = """Detect the coin in this frame. Return JSON:
{
    "detected": true/false,
    "position": { "x": pixel, "y": pixel },
    "size": { "width": pixel, "height": pixel },
    "confidence": 0-1
}"""

LIGHTING_ANALYSIS_PROMPT = """Analyze the lighting in this frame for 3D matching. Return JSON:
{
    "keyLight": { "direction": [x,y,z], "intensity": 0-100, "color": [r,g,b] },
    "fillLight": { "direction": [x,y,z], "intensity": 0-100, "color": [r,g,b] },
    "ambientLevel": 0-100,
    "shadowHardness": "soft|medium|hard"
}"""

COLOR_ANALYSIS_PROMPT = """Analyze colors for grading a 3D element to match. Return JSON:
{
    "levels": { "inputBlack": 0-255, "inputWhite": 0-255, "gamma": 0.1-3 },
    "temperature": -100 to 100,
    "tint": -100 to 100,
    "exposure": -2 to 2
}"""

ANALYSIS_PROMPTS = {
    "full": FULL_ANALYSIS_PROMPT,
    "coin": COIN_ANALYSIS_PROMPT,
    "lighting": LIGHTING_ANALYSIS_PROMPT,
    "color": COLOR_ANALYSIS_PROMPT,
}

COMMAND_ENVELOPE = """{
    "action": "actionName",
    "params": { ... parameters for the action ... },
    "explanation": "What this will do",
    "manualSteps": ["Steps user must do manually"],
    "followUp": ["Suggested next actions"]
}"""
