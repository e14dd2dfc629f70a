PORTRAIT_QUALITY_MODIFIERS = ", ".join([
    "high resolution",
    "detailed facial features",
    "professional photography",
    "studio lighting",
    "cinematic quality",
    "8k resolution",
    "masterpiece",
    "best quality",
    "photorealistic",
])

PORTRAIT_NEGATIVE_PROMPT = (
    "blurry, low quality, distorted, deformed, low resolution, watermark, text, "
    "signature, logo, username, grainy, pixelated"
)

VIDEO_NEGATIVE_PROMPT = "low quality, blurry, distorted, watermark, text"

ETHNICITY_DESCRIPTIONS = {
    "caucasian": "Caucasian with European features",
    "african": "African American with rich dark skin",
    "asian": "East Asian with distinctive facial features",
    "hispanic": "Hispanic/Latino with warm skin tone",
    "middle-eastern": "Middle Eastern with olive complexion",
    "mixed": "Mixed ethnicity with diverse features",
    "indian": "South Asian with traditional features",
    "native-american": "Native American with indigenous features",
}

HAIR_DESCRIPTIONS = {
    "black": "rich black hair",
    "brown": "warm brown hair",
    "blonde": "golden blonde hair",
    "red": "vibrant red hair",
    "auburn": "auburn hair with reddish highlights",
    "gray": "distinguished gray hair",
    "white": "elegant white hair",
}

EYE_DESCRIPTIONS = {
    "brown": "warm brown eyes",
    "blue": "bright blue eyes",
    "green": "striking green eyes",
    "hazel": "expressive hazel eyes",
    "gray": "piercing gray eyes",
    "amber": "golden amber eyes",
}

STYLE_DESCRIPTIONS = {
    "casual": "casual contemporary clothing",
    "professional": "professional business attire",
    "artistic": "creative artistic appearance",
    "athletic": "athletic sporty look",
    "elegant": "elegant sophisticated style",
    "bohemian": "bohemian free-spirited style",
    "vintage": "classic vintage styling",
    "modern": "modern trendy fashion",
}
DEFAULT_STYLE_DESCRIPTION = "well-dressed appearance"

# (upper age bound exclusive, description)
AGE_BANDS = (
    (18, "young adult (18-22)"),
    (30, "young adult"),
    (40, "adult"),
    (50, "mature adult"),
    (60, "middle-aged"),
)
OLDEST_AGE_DESCRIPTION = "distinguished older adult"

VIDEO_QUALITY_MODIFIERS = "high quality, professional cinematography, smooth motion, detailed animation"

ASPECT_RATIO_MODIFIERS = {
    "9:16": "vertical format, mobile-optimized",
    "1:1": "square format, social media optimized",
}
DEFAULT_ASPECT_RATIO_MODIFIER = "widescreen format, cinematic presentation"

# Voice ids by character profile.
CHARACTER_VOICES = {
    "young_male": "pNInz6obpgDQGcFmaJgB",
    "young_female": "EXAVITQu4vr4xnSDxMaL",
    "mature_male": "29vD33N1CtxCmqQRPOHJ",
    "mature_female": "MF3mGyEYCl7XYWbV9V6O",
    "elderly_male": "VR6AewLTigWG4xSOukaG",
    "elderly_female": "oWAxZDx7w5VEj9dCyTzz",
    "narrator": "pqHfZKP75CvOlQylNhV4",
    "child": "nPczCjzI2devNBz1zQrb",
    "dramatic": "g5CIjZEefAph4nQFvHAz",
    "mysterious": "cgSgspJ2msm6clMCkdW9",
}

# Narration voice and settings per story theme.
THEME_VOICES = {
    "fantasy": ("EXAVITQu4vr4xnSDxMaL", {"stability": 0.7, "similarity_boost": 0.8, "style": 0.3, "use_speaker_boost": True}),
    "sci-fi": ("ErXwobaYiN019PkySvjV", {"stability": 0.6, "similarity_boost": 0.9, "style": 0.2, "use_speaker_boost": True}),
    "horror": ("MF3mGyEYCl7XYWbV9V6O", {"stability": 0.8, "similarity_boost": 0.7, "style": 0.6, "use_speaker_boost": False}),
    "romance": ("ThT5KcBeYPX3keUQqHPh", {"stability": 0.7, "similarity_boost": 0.9, "style": 0.4, "use_speaker_boost": True}),
    "drama": ("AZnzlk1XvdvUeBnXmlld", {"stability": 0.6, "similarity_boost": 0.8, "style": 0.5, "use_speaker_boost": True}),
    "adventure": ("XB0fDUnXU5powFXDhCwa", {"stability": 0.6, "similarity_boost": 0.8, "style": 0.3, "use_speaker_boost": True}),
    "comedy": ("pNInz6obpgDQGcFmaJgB", {"stability": 0.5, "similarity_boost": 0.7, "style": 0.2, "use_speaker_boost": True}),
    "mystery": ("onwK4e9ZLuTAKqWW03F9", {"stability": 0.8, "similarity_boost": 0.8, "style": 0.4, "use_speaker_boost": False}),
}
DEFAULT_THEME = "fantasy"
